"""
Score models: per-pillar results, the full breakdown, and the persisted
daily snapshot.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from .enums import Pillar

PILLAR_MAX_SCORES: dict[Pillar, int] = {
    Pillar.P1: 250,
    Pillar.P2: 250,
    Pillar.P3: 200,
    Pillar.P4: 200,
    Pillar.P5: 100,
}

PILLAR_NAMES: dict[Pillar, str] = {
    Pillar.P1: "Index & Crawl Health",
    Pillar.P2: "Search Visibility",
    Pillar.P3: "Engagement & Intent",
    Pillar.P4: "Content Performance",
    Pillar.P5: "Technical Experience",
}

MAX_TOTAL_SCORE = sum(PILLAR_MAX_SCORES.values())


class PillarResult(BaseModel):
    """
    Score for one pillar with its named, already-rounded components.

    Attributes:
        score: Sum of the component points, 0..max_score
        max_score: Point budget for this pillar
        components: Component name -> integer points
    """

    score: int = Field(ge=0, description="Pillar score (sum of components)")
    max_score: int = Field(gt=0, description="Maximum points for this pillar")
    components: dict[str, int] = Field(
        default_factory=dict, description="Rounded component points by name"
    )

    @model_validator(mode="after")
    def validate_score_bounds(self) -> "PillarResult":
        """Ensure score stays within the pillar budget."""
        if self.score > self.max_score:
            raise ValueError(
                f"Pillar score {self.score} exceeds max_score {self.max_score}"
            )
        return self


class ScoreBreakdown(BaseModel):
    """
    The five pillar results of one scoring run, plus their total.

    Field order is fixed, so model_dump_json() of identical inputs is
    byte-for-byte identical.
    """

    p1: PillarResult = Field(description="P1 Index & Crawl Health")
    p2: PillarResult = Field(description="P2 Search Visibility")
    p3: PillarResult = Field(description="P3 Engagement & Intent")
    p4: PillarResult = Field(description="P4 Content Performance")
    p5: PillarResult = Field(description="P5 Technical Experience")

    @computed_field
    @property
    def total_score(self) -> int:
        return sum(result.score for result in self.pillars().values())

    def pillars(self) -> dict[Pillar, PillarResult]:
        """Pillar results keyed by Pillar, in P1..P5 order."""
        return {pillar: getattr(self, pillar.field_name) for pillar in Pillar}

    def component(self, pillar: Pillar, name: str) -> Optional[int]:
        """Look up one component score, or None if the pillar has no such component."""
        return getattr(self, pillar.field_name).components.get(name)


class ScoreSnapshot(BaseModel):
    """
    Persisted daily score, one row per date.

    Created or overwritten whole by the aggregator; never partially updated.
    """

    score_date: date = Field(description="Scored calendar date (unique key)")
    total_score: int = Field(ge=0, le=MAX_TOTAL_SCORE, description="Sum of pillar scores")
    p1_score: int = Field(ge=0, le=PILLAR_MAX_SCORES[Pillar.P1])
    p2_score: int = Field(ge=0, le=PILLAR_MAX_SCORES[Pillar.P2])
    p3_score: int = Field(ge=0, le=PILLAR_MAX_SCORES[Pillar.P3])
    p4_score: int = Field(ge=0, le=PILLAR_MAX_SCORES[Pillar.P4])
    p5_score: int = Field(ge=0, le=PILLAR_MAX_SCORES[Pillar.P5])
    breakdown: ScoreBreakdown = Field(description="Full structured breakdown")
    updated_at: Optional[datetime] = Field(
        default=None, description="Last write time (set by storage on read)"
    )

    @classmethod
    def from_breakdown(cls, score_date: date, breakdown: ScoreBreakdown) -> "ScoreSnapshot":
        """Build a snapshot whose denormalized columns mirror the breakdown."""
        return cls(
            score_date=score_date,
            total_score=breakdown.total_score,
            p1_score=breakdown.p1.score,
            p2_score=breakdown.p2.score,
            p3_score=breakdown.p3.score,
            p4_score=breakdown.p4.score,
            p5_score=breakdown.p5.score,
            breakdown=breakdown,
        )
