"""
Enumeration types for the scoring engine.

All enums inherit from str to ensure JSON serialization compatibility.
"""

from enum import Enum


class Pillar(str, Enum):
    """
    The five weighted categories that make up the 0-1000 health score.

    Max points: P1 250, P2 250, P3 200, P4 200, P5 100.
    """

    P1 = "P1"  # Index & Crawl Health
    P2 = "P2"  # Search Visibility
    P3 = "P3"  # Engagement & Intent
    P4 = "P4"  # Content Performance
    P5 = "P5"  # Technical Experience

    @property
    def field_name(self) -> str:
        """Attribute name of this pillar on ScoreBreakdown (p1..p5)."""
        return self.value.lower()


class Severity(str, Enum):
    """
    Severity levels for remediation actions and alerts.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Comparison(str, Enum):
    """How an action rule compares a component score to its threshold."""

    LESS_THAN = "lt"
    GREATER_THAN = "gt"


class AlertType(str, Enum):
    """
    Alert rule types evaluated after each daily scoring run.
    """

    SCORE_DROP_7D = "SCORE_DROP_7D"
    PILLAR_DROP = "PILLAR_DROP"
    VISIBILITY_IMPRESSIONS_DROP = "VISIBILITY_IMPRESSIONS_DROP"
    CTR_ANOMALY = "CTR_ANOMALY"
    FUNNEL_CONV_DROP = "FUNNEL_CONV_DROP"


class AlertStatus(str, Enum):
    """
    Status values for alerts.

    Tracks the lifecycle of an alert from generation through human
    acknowledgment or dismissal.
    """

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
