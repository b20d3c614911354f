"""
Remediation action models.

An ActionRule is one row of the fixed threshold table; an Action is what a
fired rule produces for a given date.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import Comparison, Pillar, Severity


class Action(BaseModel):
    """
    A recommended remediation derived from a weak pillar component.

    Identity is (date, pillar, key): the same weakness re-evaluated on the
    same day overwrites the stored row instead of duplicating it.
    """

    pillar: Pillar = Field(description="Pillar the weakness belongs to")
    key: str = Field(min_length=1, description="Stable identifier, unique per date+pillar")
    severity: Severity = Field(description="How urgently this should be addressed")
    title: str = Field(min_length=1, description="Short headline")
    description: str = Field(description="What to do about it")
    impact_points: int = Field(ge=0, description="Estimated score points recoverable")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Rule inputs")


class ActionRecord(Action):
    """An Action as read back from storage."""

    score_date: date = Field(description="Date the action was generated for")
    generated_at: Optional[datetime] = Field(
        default=None, description="Timestamp of the run that last wrote this row"
    )


class ActionRule(BaseModel):
    """
    One entry of the threshold table.

    Fires when `components[component] <comparison> threshold` for the pillar.
    """

    model_config = ConfigDict(frozen=True)

    pillar: Pillar
    component: str
    comparison: Comparison = Comparison.LESS_THAN
    threshold: int
    key: str
    severity: Severity
    title: str
    description: str
    impact_points: int = Field(ge=0)

    def matches(self, value: int) -> bool:
        if self.comparison == Comparison.GREATER_THAN:
            return value > self.threshold
        return value < self.threshold

    def build_action(self, value: int) -> Action:
        return Action(
            pillar=self.pillar,
            key=self.key,
            severity=self.severity,
            title=self.title,
            description=self.description,
            impact_points=self.impact_points,
            metadata={"score": value, "threshold": self.threshold},
        )
