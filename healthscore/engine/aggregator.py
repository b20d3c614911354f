"""
Score Aggregator - runs the pillar calculators and persists the daily score.

One call produces one ScoreSnapshot: the five pillar results, their total
(0-1000) and a canonical breakdown, written with a single upsert keyed by the
scored date. Re-running for the same date with unchanged metrics rewrites an
identical row.
"""

from datetime import date

import structlog

from healthscore.config import Settings
from healthscore.models.scores import MAX_TOTAL_SCORE, ScoreBreakdown, ScoreSnapshot
from healthscore.storage.base import StorageBackend

from .pillars import PILLAR_CALCULATORS


class ScoreAggregator:
    """
    Computes and stores the daily health score.

    Attributes:
        storage: Backend used both as MetricsReader and ScoreRepository
        settings: Source identifiers, trailing window and PageSpeed toggle

    Example:
        >>> aggregator = ScoreAggregator(storage=storage, settings=get_settings())
        >>> snapshot = aggregator.calculate_and_store(date(2026, 1, 15))
        >>> print(f"{snapshot.total_score}/1000")
    """

    def __init__(self, storage: StorageBackend, settings: Settings):
        self.storage = storage
        self.settings = settings
        self.logger = structlog.get_logger()

    def calculate(self, score_date: date) -> ScoreBreakdown:
        """
        Run P1..P5 for a date without writing anything.

        Raises:
            ConfigurationError: If a calculator's source identifier is missing
            StorageError: If a metric read fails
        """
        results = {
            pillar.field_name: calculator(self.storage, score_date, self.settings)
            for pillar, calculator in PILLAR_CALCULATORS
        }
        breakdown = ScoreBreakdown(**results)

        self.logger.debug(
            "pillars_calculated",
            score_date=score_date.isoformat(),
            **{name: result.score for name, result in results.items()},
        )
        return breakdown

    def calculate_and_store(self, score_date: date) -> ScoreSnapshot:
        """
        Calculate the score for a date and upsert its snapshot.

        Returns:
            The snapshot that was written

        Raises:
            ConfigurationError: If a calculator's source identifier is missing
            StorageError: If a metric read or the snapshot write fails
        """
        self.logger.info("score_calculation_started", score_date=score_date.isoformat())

        breakdown = self.calculate(score_date)
        snapshot = ScoreSnapshot.from_breakdown(score_date, breakdown)
        self.storage.upsert_score_snapshot(snapshot)

        self.logger.info(
            "score_calculated",
            score_date=score_date.isoformat(),
            total_score=snapshot.total_score,
            max_score=MAX_TOTAL_SCORE,
        )
        return snapshot
