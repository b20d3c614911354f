"""
Abstract storage interfaces for the scoring engine.

The scoring core never issues storage-specific queries itself. It talks to
two capabilities:

- MetricsReader: read-only access to the daily Search Console, GA4 and
  PageSpeed aggregates written by the ingestion jobs.
- ScoreRepository: the tables this core owns (daily score snapshots,
  remediation actions, alert rules and alerts), written with per-key upsert
  semantics.

StorageBackend combines both and adds the ingestion-side writers, so a single
implementation (DuckDB today) can back the whole system.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from healthscore.models.actions import Action, ActionRecord
from healthscore.models.alerts import Alert, AlertRule
from healthscore.models.enums import AlertStatus, AlertType, Pillar
from healthscore.models.metrics import (
    LandingAggregates,
    LandingDailyMetrics,
    PageDailyMetrics,
    PageSpeedAggregates,
    PageSpeedDailyMetrics,
    QueryDailyMetrics,
    SiteDailyMetrics,
    SiteTrailingAverages,
)
from healthscore.models.scores import ScoreSnapshot


class MetricsReader(ABC):
    """
    Read-only view over the ingested daily metric tables.

    Trailing-window methods cover the `days` calendar days strictly before
    `metric_date`; the scored date itself is never part of its own baseline.
    Methods never raise for "no rows": they return None fields, zero counts,
    or empty lists, and callers decide the fallback.
    """

    @abstractmethod
    def read_site_metrics(self, site_url: str, metric_date: date) -> Optional[SiteDailyMetrics]:
        """
        Read site-level Search Console totals for one day.

        Args:
            site_url: Search Console property
            metric_date: Day to read

        Returns:
            The day's row, or None if nothing was ingested for it

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_site_trailing_averages(
        self, site_url: str, metric_date: date, days: int = 7
    ) -> SiteTrailingAverages:
        """
        Average site-level metrics over the trailing window.

        Args:
            site_url: Search Console property
            metric_date: Scored date (excluded from the window)
            days: Window length in days

        Returns:
            SiteTrailingAverages with None averages when the window is empty

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def count_top_queries(
        self, site_url: str, metric_date: date, max_position: float = 10.0
    ) -> int:
        """
        Count queries whose average position on the day is within max_position.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def count_ranked_pages(self, site_url: str, metric_date: date) -> int:
        """
        Count distinct pages with Search Console data on the day.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_page_count_trailing_average(
        self, site_url: str, metric_date: date, days: int = 7
    ) -> Optional[float]:
        """
        Average daily ranked-page count over the trailing window.

        Only days that have page rows contribute to the average.

        Returns:
            The average, or None when the window has no page rows

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_landing_aggregates(self, property_id: str, metric_date: date) -> LandingAggregates:
        """
        Aggregate GA4 landing-page rows for one day.

        Averages engagement rate and engagement time across landing pages and
        sums users, sessions and conversions.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_pagespeed_aggregates(self, metric_date: date) -> PageSpeedAggregates:
        """
        Average PageSpeed performance, LCP and CLS across URLs for one day.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_page_metrics(
        self, site_url: str, metric_date: date, min_impressions: int = 0
    ) -> list[PageDailyMetrics]:
        """
        Read per-page Search Console rows for one day, most impressions first.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def read_conversion_rate_trailing_average(
        self, property_id: str, metric_date: date, days: int = 7
    ) -> Optional[float]:
        """
        Average of daily organic conversion rates over the trailing window.

        Days with zero organic sessions are excluded.

        Returns:
            The average rate, or None when no day in the window has sessions

        Raises:
            StorageError: If the read fails
        """
        pass


class ScoreRepository(ABC):
    """
    Persistence for the outputs the scoring core owns.

    Write semantics:
    - Snapshots are upserted by score_date (whole-row overwrite).
    - Actions are upserted by (score_date, pillar, key); rows are never
      deleted by a re-run.
    - Alert rules are upserted by rule_id and alerts by alert_id.
    """

    @abstractmethod
    def upsert_score_snapshot(self, snapshot: ScoreSnapshot) -> date:
        """
        Insert or overwrite the snapshot for snapshot.score_date.

        Returns:
            The snapshot's score_date

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def read_score_snapshot(self, score_date: date) -> Optional[ScoreSnapshot]:
        """Read the snapshot for one date, or None."""
        pass

    @abstractmethod
    def read_latest_score_snapshot(self) -> Optional[ScoreSnapshot]:
        """Read the most recent snapshot by date, or None if none exist."""
        pass

    @abstractmethod
    def read_score_snapshots(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ScoreSnapshot]:
        """Read snapshots in [start_date, end_date], oldest first."""
        pass

    @abstractmethod
    def read_score_trailing_averages(
        self, score_date: date, days: int = 7
    ) -> Optional[dict[str, float]]:
        """
        Average total and pillar scores over the trailing window.

        Returns:
            Dict with keys total_score, p1_score .. p5_score, or None when no
            snapshots fall inside the window
        """
        pass

    @abstractmethod
    def upsert_actions(
        self,
        score_date: date,
        actions: list[Action],
        generated_at: datetime,
    ) -> int:
        """
        Upsert a batch of actions for one date.

        Every row written in the batch shares generated_at, and generated_at
        becomes the date's latest run even when actions is empty, which lets
        readers tell the latest run's actions from rows left by earlier runs.

        Returns:
            Number of rows written

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def read_actions(
        self,
        score_date: date,
        pillar: Optional[Pillar] = None,
        latest_run_only: bool = False,
    ) -> list[ActionRecord]:
        """
        Read stored actions for a date, highest impact first.

        Args:
            score_date: Date to read
            pillar: Optional pillar filter
            latest_run_only: Only rows written by the most recent run for the date
        """
        pass

    @abstractmethod
    def write_alert_rule(self, rule: AlertRule) -> str:
        """Insert or overwrite an alert rule; returns rule_id."""
        pass

    @abstractmethod
    def read_alert_rules(self, enabled: Optional[bool] = None) -> list[AlertRule]:
        """Read alert rules with optional enabled filter."""
        pass

    @abstractmethod
    def write_alert(self, alert: Alert) -> str:
        """Insert or overwrite an alert; returns alert_id."""
        pass

    @abstractmethod
    def find_recent_alert(
        self, alert_type: AlertType, entity_key: str, since: datetime
    ) -> Optional[Alert]:
        """Find an active alert of this type and entity created at or after `since`."""
        pass

    @abstractmethod
    def read_alerts(
        self, status: Optional[AlertStatus] = None, limit: int = 100
    ) -> list[Alert]:
        """Read alerts, newest first."""
        pass


class StorageBackend(MetricsReader, ScoreRepository):
    """
    Complete storage contract: metric reads, score persistence, and the
    ingestion-side metric writers.

    Metric writers upsert on the table's natural key, matching how the
    ingestion jobs re-run safely for a day.
    """

    @abstractmethod
    def upsert_site_metrics(self, rows: list[SiteDailyMetrics]) -> int:
        """Upsert site rows keyed by (date, site_url)."""
        pass

    @abstractmethod
    def upsert_query_metrics(self, rows: list[QueryDailyMetrics]) -> int:
        """Upsert query rows keyed by (date, site_url, query)."""
        pass

    @abstractmethod
    def upsert_page_metrics(self, rows: list[PageDailyMetrics]) -> int:
        """Upsert page rows keyed by (date, site_url, page)."""
        pass

    @abstractmethod
    def upsert_landing_metrics(self, rows: list[LandingDailyMetrics]) -> int:
        """Upsert GA4 rows keyed by (date, property_id, landing_page)."""
        pass

    @abstractmethod
    def upsert_pagespeed_metrics(self, rows: list[PageSpeedDailyMetrics]) -> int:
        """Upsert PageSpeed rows keyed by (date, url, strategy)."""
        pass
