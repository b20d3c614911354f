"""
Pydantic v2 data models for the scoring engine.

Model Organization:
    - enums: Pillar, Severity, Comparison, alert enums
    - metrics: ingested daily metric rows and reader aggregates
    - scores: PillarResult, ScoreBreakdown, ScoreSnapshot
    - actions: Action, ActionRecord, ActionRule
    - alerts: AlertRule, Alert

Usage:
    >>> from healthscore.models import PillarResult, Pillar
    >>> PillarResult(score=50, max_score=100,
    ...              components={"core_web_vitals": 25, "mobile_usability": 25})
"""

from .actions import Action, ActionRecord, ActionRule
from .alerts import Alert, AlertRule
from .enums import AlertStatus, AlertType, Comparison, Pillar, Severity
from .metrics import (
    LandingAggregates,
    LandingDailyMetrics,
    PageDailyMetrics,
    PageSpeedAggregates,
    PageSpeedDailyMetrics,
    QueryDailyMetrics,
    SiteDailyMetrics,
    SiteTrailingAverages,
)
from .scores import (
    MAX_TOTAL_SCORE,
    PILLAR_MAX_SCORES,
    PILLAR_NAMES,
    PillarResult,
    ScoreBreakdown,
    ScoreSnapshot,
)

__all__ = [
    # Enums
    "AlertStatus",
    "AlertType",
    "Comparison",
    "Pillar",
    "Severity",
    # Metrics
    "SiteDailyMetrics",
    "QueryDailyMetrics",
    "PageDailyMetrics",
    "LandingDailyMetrics",
    "PageSpeedDailyMetrics",
    "SiteTrailingAverages",
    "LandingAggregates",
    "PageSpeedAggregates",
    # Scores
    "MAX_TOTAL_SCORE",
    "PILLAR_MAX_SCORES",
    "PILLAR_NAMES",
    "PillarResult",
    "ScoreBreakdown",
    "ScoreSnapshot",
    # Actions
    "Action",
    "ActionRecord",
    "ActionRule",
    # Alerts
    "Alert",
    "AlertRule",
]
