"""
Daily scoring pipeline: score, then actions, then alerts.

This is what the scheduled job and the /run endpoint invoke once per day.
Scoring and action failures propagate to the caller, which decides whether
to retry; alert rules fail independently inside the AlertEngine.
"""

from datetime import date
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from healthscore.config import Settings
from healthscore.models.actions import Action
from healthscore.models.alerts import Alert
from healthscore.models.scores import ScoreSnapshot
from healthscore.storage.base import StorageBackend

from .actions import ActionGenerator
from .aggregator import ScoreAggregator
from .alerts import AlertEngine

logger = structlog.get_logger()


class DailyRunResult(BaseModel):
    """Outcome of one daily run."""

    score_date: date
    snapshot: ScoreSnapshot
    actions: list[Action] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    alerts_evaluated: bool = False

    @property
    def total_score(self) -> int:
        return self.snapshot.total_score


def run_daily_scoring(
    storage: StorageBackend,
    settings: Settings,
    score_date: date,
    run_alerts: Optional[bool] = None,
) -> DailyRunResult:
    """
    Run the full daily pipeline for one date.

    Args:
        storage: Backend used for metric reads and all writes
        settings: Application settings
        score_date: Date to score
        run_alerts: Override settings.alerts_enabled

    Returns:
        DailyRunResult with the snapshot, this run's actions and new alerts

    Raises:
        ConfigurationError: If a required source identifier is missing
        StorageError: If scoring or action persistence fails
    """
    if run_alerts is None:
        run_alerts = settings.alerts_enabled

    log = logger.bind(score_date=score_date.isoformat())
    log.info("daily_run_started", alerts_enabled=run_alerts)

    snapshot = ScoreAggregator(storage, settings).calculate_and_store(score_date)
    actions = ActionGenerator(storage).generate_actions(score_date, snapshot.breakdown)

    alerts: list[Alert] = []
    if run_alerts:
        alerts = AlertEngine(storage, settings).run_alerts(score_date)

    log.info(
        "daily_run_completed",
        total_score=snapshot.total_score,
        actions=len(actions),
        alerts=len(alerts),
    )

    return DailyRunResult(
        score_date=score_date,
        snapshot=snapshot,
        actions=actions,
        alerts=alerts,
        alerts_evaluated=run_alerts,
    )
