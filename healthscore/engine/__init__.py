"""
Scoring engine.

Components:
    normalization: pure helpers mapping raw metrics onto [0, 1]
    pillars: P1..P5 calculators returning PillarResult
    ScoreAggregator: sums the pillars and upserts the daily snapshot
    ActionGenerator: threshold rules turning weak components into actions
    AlertEngine: stored alert rules evaluated after scoring
    run_daily_scoring: score, actions and alerts in one call

Example:
    >>> from healthscore.engine import run_daily_scoring
    >>> result = run_daily_scoring(storage, get_settings(), date(2026, 1, 15))
    >>> print(result.total_score, [a.key for a in result.actions])
"""

from .actions import ACTION_RULES, ActionGenerator
from .aggregator import ScoreAggregator
from .alerts import AlertEngine, default_alert_rules
from .pillars import (
    PILLAR_CALCULATORS,
    calculate_p1,
    calculate_p2,
    calculate_p3,
    calculate_p4,
    calculate_p5,
)
from .pipeline import DailyRunResult, run_daily_scoring

__all__ = [
    "ACTION_RULES",
    "ActionGenerator",
    "AlertEngine",
    "DailyRunResult",
    "PILLAR_CALCULATORS",
    "ScoreAggregator",
    "calculate_p1",
    "calculate_p2",
    "calculate_p3",
    "calculate_p4",
    "calculate_p5",
    "default_alert_rules",
    "run_daily_scoring",
]
