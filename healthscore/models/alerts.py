"""
Alert rule and alert models.

Alert rules are stored configuration evaluated after each scoring run;
alerts are their outputs and carry an acknowledgment lifecycle.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from .enums import AlertStatus, AlertType, Severity


class AlertRule(BaseModel):
    """
    A configured alert check.

    Attributes:
        rule_id: Unique identifier (stable for seeded defaults)
        type: Which check to run
        thresholds: Type-specific numeric thresholds (e.g. min_drop, min_pct_drop)
        lookback_days: Trailing window used as the baseline
        severity: Severity assigned to alerts this rule creates
        enabled: Disabled rules are skipped
    """

    rule_id: str = Field(default_factory=lambda: str(uuid4()))
    type: AlertType
    thresholds: dict[str, float] = Field(default_factory=dict)
    lookback_days: int = Field(default=7, ge=1, le=90)
    severity: Severity = Severity.MEDIUM
    enabled: bool = True


class Alert(BaseModel):
    """
    An alert raised by an alert rule.

    Duplicates (same type and entity_key, still active, inside the dedup
    window) are suppressed before persistence.
    """

    alert_id: str = Field(default_factory=lambda: str(uuid4()))
    type: AlertType
    severity: Severity
    entity_type: str = Field(description="What the alert is about: score, pillar, site, page, conversion")
    entity_key: str = Field(description="Which one: 'total', 'P2', a site URL, a page URL")
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.utcnow)
