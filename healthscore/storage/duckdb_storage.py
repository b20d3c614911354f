"""
DuckDB storage implementation for the scoring engine.

Provides a local storage backend using DuckDB for both the ingested daily
metric tables and the score/action/alert tables this engine owns.

Key features:
- Thread-local connections
- Automatic, idempotent schema creation
- Natural-key primary keys with INSERT ... ON CONFLICT upserts
- JSON columns for breakdowns, action metadata and alert details
- Every failure logged and re-raised as StorageError
"""

import json
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import duckdb
import structlog

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
from healthscore.models.scores import ScoreBreakdown, ScoreSnapshot

from .base import StorageBackend

logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


_SCHEMA = [
    # =========================================================================
    # Ingested metric tables (written by ingestion jobs, read by scoring)
    # =========================================================================
    """
    CREATE TABLE IF NOT EXISTS gsc_daily_site_metrics (
        metric_date DATE NOT NULL,
        site_url VARCHAR NOT NULL,
        clicks INTEGER NOT NULL DEFAULT 0,
        impressions INTEGER NOT NULL DEFAULT 0,
        ctr DOUBLE NOT NULL DEFAULT 0,
        position DOUBLE NOT NULL DEFAULT 0,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (metric_date, site_url)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS gsc_daily_query_metrics (
        metric_date DATE NOT NULL,
        site_url VARCHAR NOT NULL,
        query VARCHAR NOT NULL,
        clicks INTEGER NOT NULL DEFAULT 0,
        impressions INTEGER NOT NULL DEFAULT 0,
        ctr DOUBLE NOT NULL DEFAULT 0,
        position DOUBLE NOT NULL DEFAULT 0,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (metric_date, site_url, query)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS gsc_daily_page_metrics (
        metric_date DATE NOT NULL,
        site_url VARCHAR NOT NULL,
        page VARCHAR NOT NULL,
        clicks INTEGER NOT NULL DEFAULT 0,
        impressions INTEGER NOT NULL DEFAULT 0,
        ctr DOUBLE NOT NULL DEFAULT 0,
        position DOUBLE NOT NULL DEFAULT 0,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (metric_date, site_url, page)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ga4_daily_landing_metrics (
        metric_date DATE NOT NULL,
        property_id VARCHAR NOT NULL,
        landing_page VARCHAR NOT NULL,
        engagement_rate DOUBLE NOT NULL DEFAULT 0,
        avg_engagement_time_seconds DOUBLE NOT NULL DEFAULT 0,
        returning_users INTEGER NOT NULL DEFAULT 0,
        total_users INTEGER NOT NULL DEFAULT 0,
        organic_sessions INTEGER NOT NULL DEFAULT 0,
        conversions DOUBLE NOT NULL DEFAULT 0,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (metric_date, property_id, landing_page)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pagespeed_daily_metrics (
        metric_date DATE NOT NULL,
        url VARCHAR NOT NULL,
        strategy VARCHAR NOT NULL,
        performance_score DOUBLE NOT NULL,
        lcp DOUBLE NOT NULL,
        cls DOUBLE NOT NULL,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (metric_date, url, strategy)
    )
    """,
    # =========================================================================
    # Score tables (owned by the scoring engine)
    # =========================================================================
    """
    CREATE TABLE IF NOT EXISTS score_daily (
        score_date DATE PRIMARY KEY,
        total_score INTEGER NOT NULL,
        p1_score INTEGER NOT NULL,
        p2_score INTEGER NOT NULL,
        p3_score INTEGER NOT NULL,
        p4_score INTEGER NOT NULL,
        p5_score INTEGER NOT NULL,
        breakdown JSON NOT NULL,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS score_actions_daily (
        score_date DATE NOT NULL,
        pillar VARCHAR NOT NULL,
        action_key VARCHAR NOT NULL,
        severity VARCHAR NOT NULL,
        title VARCHAR NOT NULL,
        description TEXT NOT NULL,
        impact_points INTEGER NOT NULL,
        metadata JSON,
        generated_at TIMESTAMP NOT NULL,
        PRIMARY KEY (score_date, pillar, action_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS score_action_runs (
        score_date DATE PRIMARY KEY,
        generated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alert_rules (
        rule_id VARCHAR PRIMARY KEY,
        type VARCHAR NOT NULL,
        thresholds JSON NOT NULL,
        lookback_days INTEGER NOT NULL,
        severity VARCHAR NOT NULL,
        enabled BOOLEAN NOT NULL,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        alert_id VARCHAR PRIMARY KEY,
        type VARCHAR NOT NULL,
        severity VARCHAR NOT NULL,
        entity_type VARCHAR NOT NULL,
        entity_key VARCHAR NOT NULL,
        message TEXT NOT NULL,
        details JSON,
        status VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL
    )
    """,
]

_TABLES = [
    "gsc_daily_site_metrics",
    "gsc_daily_query_metrics",
    "gsc_daily_page_metrics",
    "ga4_daily_landing_metrics",
    "pagespeed_daily_metrics",
    "score_daily",
    "score_actions_daily",
    "score_action_runs",
    "alert_rules",
    "alerts",
]


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/healthscore.duckdb"):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        try:
            yield self._local.connection
        except Exception:
            try:
                self._local.connection.rollback()
            except duckdb.Error as rollback_error:
                # No open transaction to roll back
                logger.debug("duckdb_rollback_skipped", error=str(rollback_error))
            raise

    def _initialize_schema(self):
        """
        Create all tables. Idempotent and safe to call multiple times.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    for statement in _SCHEMA:
                        conn.execute(statement)
                    self._initialized = True
                logger.info("duckdb_schema_initialized", tables=len(_TABLES))

            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """
        Truncate all tables. For testing only; a no-op unless TESTING is set.
        Allows each test to start with a clean slate.
        """
        if not os.environ.get("TESTING"):
            return
        try:
            with self._get_connection() as conn:
                for table in _TABLES:
                    conn.execute(f"DELETE FROM {table}")
        except Exception as e:
            logger.error("clear_for_testing_failed", error=str(e))
            raise StorageError(f"Failed to clear tables: {e}") from e

    # =========================================================================
    # Upsert helper
    # =========================================================================

    def _upsert_rows(
        self,
        table: str,
        key_columns: list[str],
        value_columns: list[str],
        rows: list[dict[str, Any]],
        touch_updated_at: bool = True,
    ) -> int:
        """
        Upsert rows on the table's natural key inside one transaction.

        Rows repeating a key within the batch collapse to the last one, so
        each key is written at most once per transaction.
        """
        if not rows:
            return 0

        deduped: dict[tuple, dict[str, Any]] = {}
        for row in rows:
            deduped[tuple(row[c] for c in key_columns)] = row

        columns = key_columns + value_columns
        updates = [f"{c} = EXCLUDED.{c}" for c in value_columns]
        if touch_updated_at:
            updates.append("updated_at = now()")
        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(['?'] * len(columns))}) "
            f"ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {', '.join(updates)}"
        )

        with self._get_connection() as conn:
            conn.begin()
            for row in deduped.values():
                conn.execute(query, [row[c] for c in columns])
            conn.commit()

        return len(deduped)

    # =========================================================================
    # Ingestion-side metric writers
    # =========================================================================

    def _upsert_metric_models(self, table: str, key_columns: list[str], rows: list) -> int:
        try:
            payload = [row.model_dump() for row in rows]
            value_columns = [
                c for c in (payload[0].keys() if payload else []) if c not in key_columns
            ]
            written = self._upsert_rows(table, key_columns, value_columns, payload)
            logger.debug("metric_rows_upserted", table=table, count=written)
            return written
        except Exception as e:
            logger.error("upsert_metric_rows_failed", table=table, error=str(e))
            raise StorageError(f"Failed to upsert {table}: {e}") from e

    def upsert_site_metrics(self, rows: list[SiteDailyMetrics]) -> int:
        """Upsert site rows keyed by (date, site_url)."""
        return self._upsert_metric_models(
            "gsc_daily_site_metrics", ["metric_date", "site_url"], rows
        )

    def upsert_query_metrics(self, rows: list[QueryDailyMetrics]) -> int:
        """Upsert query rows keyed by (date, site_url, query)."""
        return self._upsert_metric_models(
            "gsc_daily_query_metrics", ["metric_date", "site_url", "query"], rows
        )

    def upsert_page_metrics(self, rows: list[PageDailyMetrics]) -> int:
        """Upsert page rows keyed by (date, site_url, page)."""
        return self._upsert_metric_models(
            "gsc_daily_page_metrics", ["metric_date", "site_url", "page"], rows
        )

    def upsert_landing_metrics(self, rows: list[LandingDailyMetrics]) -> int:
        """Upsert GA4 rows keyed by (date, property_id, landing_page)."""
        return self._upsert_metric_models(
            "ga4_daily_landing_metrics", ["metric_date", "property_id", "landing_page"], rows
        )

    def upsert_pagespeed_metrics(self, rows: list[PageSpeedDailyMetrics]) -> int:
        """Upsert PageSpeed rows keyed by (date, url, strategy)."""
        return self._upsert_metric_models(
            "pagespeed_daily_metrics", ["metric_date", "url", "strategy"], rows
        )

    # =========================================================================
    # MetricsReader implementation
    # =========================================================================

    def _fetchone(self, operation: str, query: str, params: list) -> Optional[tuple]:
        try:
            with self._get_connection() as conn:
                return conn.execute(query, params).fetchone()
        except Exception as e:
            logger.error(f"{operation}_failed", error=str(e))
            raise StorageError(f"Failed to {operation.replace('_', ' ')}: {e}") from e

    def read_site_metrics(self, site_url: str, metric_date: date) -> Optional[SiteDailyMetrics]:
        """Read site-level Search Console totals for one day."""
        row = self._fetchone(
            "read_site_metrics",
            """
            SELECT clicks, impressions, ctr, position
            FROM gsc_daily_site_metrics
            WHERE metric_date = ? AND site_url = ?
            """,
            [metric_date, site_url],
        )
        if row is None:
            return None
        return SiteDailyMetrics(
            metric_date=metric_date,
            site_url=site_url,
            clicks=row[0],
            impressions=row[1],
            ctr=row[2],
            position=row[3],
        )

    def read_site_trailing_averages(
        self, site_url: str, metric_date: date, days: int = 7
    ) -> SiteTrailingAverages:
        """Average site-level metrics over the trailing window."""
        row = self._fetchone(
            "read_site_trailing_averages",
            """
            SELECT COUNT(*), AVG(impressions), AVG(clicks), AVG(ctr), AVG(position)
            FROM gsc_daily_site_metrics
            WHERE site_url = ? AND metric_date >= ? AND metric_date < ?
            """,
            [site_url, metric_date - timedelta(days=days), metric_date],
        )
        return SiteTrailingAverages(
            days_with_data=row[0],
            impressions=row[1],
            clicks=row[2],
            ctr=row[3],
            position=row[4],
        )

    def count_top_queries(
        self, site_url: str, metric_date: date, max_position: float = 10.0
    ) -> int:
        """Count queries ranked within max_position on the day."""
        row = self._fetchone(
            "count_top_queries",
            """
            SELECT COUNT(*)
            FROM gsc_daily_query_metrics
            WHERE metric_date = ? AND site_url = ? AND position <= ?
            """,
            [metric_date, site_url, max_position],
        )
        return int(row[0])

    def count_ranked_pages(self, site_url: str, metric_date: date) -> int:
        """Count distinct pages with data on the day."""
        row = self._fetchone(
            "count_ranked_pages",
            """
            SELECT COUNT(DISTINCT page)
            FROM gsc_daily_page_metrics
            WHERE metric_date = ? AND site_url = ?
            """,
            [metric_date, site_url],
        )
        return int(row[0])

    def read_page_count_trailing_average(
        self, site_url: str, metric_date: date, days: int = 7
    ) -> Optional[float]:
        """Average daily ranked-page count over the trailing window."""
        row = self._fetchone(
            "read_page_count_trailing_average",
            """
            SELECT AVG(cnt)
            FROM (
                SELECT metric_date, COUNT(*) AS cnt
                FROM gsc_daily_page_metrics
                WHERE site_url = ? AND metric_date >= ? AND metric_date < ?
                GROUP BY metric_date
            ) daily
            """,
            [site_url, metric_date - timedelta(days=days), metric_date],
        )
        return float(row[0]) if row[0] is not None else None

    def read_landing_aggregates(self, property_id: str, metric_date: date) -> LandingAggregates:
        """Aggregate GA4 landing-page rows for one day."""
        row = self._fetchone(
            "read_landing_aggregates",
            """
            SELECT
                AVG(engagement_rate),
                AVG(avg_engagement_time_seconds),
                COALESCE(SUM(returning_users), 0),
                COALESCE(SUM(total_users), 0),
                COALESCE(SUM(conversions), 0),
                COALESCE(SUM(organic_sessions), 0)
            FROM ga4_daily_landing_metrics
            WHERE metric_date = ? AND property_id = ?
            """,
            [metric_date, property_id],
        )
        return LandingAggregates(
            avg_engagement_rate=row[0],
            avg_engagement_time_seconds=row[1],
            returning_users=int(row[2]),
            total_users=int(row[3]),
            conversions=float(row[4]),
            organic_sessions=int(row[5]),
        )

    def read_pagespeed_aggregates(self, metric_date: date) -> PageSpeedAggregates:
        """Average PageSpeed metrics across URLs for one day."""
        row = self._fetchone(
            "read_pagespeed_aggregates",
            """
            SELECT AVG(performance_score), AVG(lcp), AVG(cls)
            FROM pagespeed_daily_metrics
            WHERE metric_date = ?
            """,
            [metric_date],
        )
        return PageSpeedAggregates(avg_performance=row[0], avg_lcp=row[1], avg_cls=row[2])

    def read_page_metrics(
        self, site_url: str, metric_date: date, min_impressions: int = 0
    ) -> list[PageDailyMetrics]:
        """Read per-page rows for one day, most impressions first."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    """
                    SELECT page, clicks, impressions, ctr, position
                    FROM gsc_daily_page_metrics
                    WHERE metric_date = ? AND site_url = ? AND impressions >= ?
                    ORDER BY impressions DESC, page ASC
                    """,
                    [metric_date, site_url, min_impressions],
                ).fetchall()

            return [
                PageDailyMetrics(
                    metric_date=metric_date,
                    site_url=site_url,
                    page=row[0],
                    clicks=row[1],
                    impressions=row[2],
                    ctr=row[3],
                    position=row[4],
                )
                for row in result
            ]

        except Exception as e:
            logger.error("read_page_metrics_failed", error=str(e))
            raise StorageError(f"Failed to read page metrics: {e}") from e

    def read_conversion_rate_trailing_average(
        self, property_id: str, metric_date: date, days: int = 7
    ) -> Optional[float]:
        """Average of daily organic conversion rates over the trailing window."""
        row = self._fetchone(
            "read_conversion_rate_trailing_average",
            """
            SELECT AVG(conv_rate)
            FROM (
                SELECT metric_date, SUM(conversions) / SUM(organic_sessions) AS conv_rate
                FROM ga4_daily_landing_metrics
                WHERE property_id = ? AND metric_date >= ? AND metric_date < ?
                GROUP BY metric_date
                HAVING SUM(organic_sessions) > 0
            ) daily
            """,
            [property_id, metric_date - timedelta(days=days), metric_date],
        )
        return float(row[0]) if row[0] is not None else None

    # =========================================================================
    # ScoreRepository - snapshots
    # =========================================================================

    def upsert_score_snapshot(self, snapshot: ScoreSnapshot) -> date:
        """Insert or overwrite the snapshot for its date."""
        try:
            self._upsert_rows(
                "score_daily",
                ["score_date"],
                [
                    "total_score",
                    "p1_score",
                    "p2_score",
                    "p3_score",
                    "p4_score",
                    "p5_score",
                    "breakdown",
                ],
                [
                    {
                        "score_date": snapshot.score_date,
                        "total_score": snapshot.total_score,
                        "p1_score": snapshot.p1_score,
                        "p2_score": snapshot.p2_score,
                        "p3_score": snapshot.p3_score,
                        "p4_score": snapshot.p4_score,
                        "p5_score": snapshot.p5_score,
                        "breakdown": snapshot.breakdown.model_dump_json(),
                    }
                ],
            )
            logger.info(
                "snapshot_upserted",
                score_date=snapshot.score_date.isoformat(),
                total_score=snapshot.total_score,
            )
            return snapshot.score_date

        except Exception as e:
            logger.error(
                "upsert_score_snapshot_failed",
                score_date=snapshot.score_date.isoformat(),
                error=str(e),
            )
            raise StorageError(f"Failed to upsert score snapshot: {e}") from e

    _SNAPSHOT_COLUMNS = """
        score_date, total_score, p1_score, p2_score, p3_score,
        p4_score, p5_score, breakdown, updated_at
    """

    @staticmethod
    def _row_to_snapshot(row: tuple) -> ScoreSnapshot:
        return ScoreSnapshot(
            score_date=row[0],
            total_score=row[1],
            p1_score=row[2],
            p2_score=row[3],
            p3_score=row[4],
            p4_score=row[5],
            p5_score=row[6],
            breakdown=ScoreBreakdown.model_validate_json(row[7]),
            updated_at=row[8],
        )

    def read_score_snapshot(self, score_date: date) -> Optional[ScoreSnapshot]:
        """Read the snapshot for one date."""
        row = self._fetchone(
            "read_score_snapshot",
            f"SELECT {self._SNAPSHOT_COLUMNS} FROM score_daily WHERE score_date = ?",
            [score_date],
        )
        return self._row_to_snapshot(row) if row else None

    def read_latest_score_snapshot(self) -> Optional[ScoreSnapshot]:
        """Read the most recent snapshot."""
        row = self._fetchone(
            "read_latest_score_snapshot",
            f"SELECT {self._SNAPSHOT_COLUMNS} FROM score_daily ORDER BY score_date DESC LIMIT 1",
            [],
        )
        return self._row_to_snapshot(row) if row else None

    def read_score_snapshots(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ScoreSnapshot]:
        """Read snapshots in a date range, oldest first."""
        try:
            with self._get_connection() as conn:
                query = f"SELECT {self._SNAPSHOT_COLUMNS} FROM score_daily WHERE 1=1"
                params: list = []

                if start_date:
                    query += " AND score_date >= ?"
                    params.append(start_date)

                if end_date:
                    query += " AND score_date <= ?"
                    params.append(end_date)

                query += " ORDER BY score_date ASC"

                result = conn.execute(query, params).fetchall()

            snapshots = [self._row_to_snapshot(row) for row in result]
            logger.debug("score_snapshots_read", count=len(snapshots))
            return snapshots

        except Exception as e:
            logger.error("read_score_snapshots_failed", error=str(e))
            raise StorageError(f"Failed to read score snapshots: {e}") from e

    def read_score_trailing_averages(
        self, score_date: date, days: int = 7
    ) -> Optional[dict[str, float]]:
        """Average total and pillar scores over the trailing window."""
        row = self._fetchone(
            "read_score_trailing_averages",
            """
            SELECT
                COUNT(*),
                AVG(total_score),
                AVG(p1_score),
                AVG(p2_score),
                AVG(p3_score),
                AVG(p4_score),
                AVG(p5_score)
            FROM score_daily
            WHERE score_date >= ? AND score_date < ?
            """,
            [score_date - timedelta(days=days), score_date],
        )
        if not row or row[0] == 0:
            return None
        keys = ["total_score", "p1_score", "p2_score", "p3_score", "p4_score", "p5_score"]
        return {key: float(value) for key, value in zip(keys, row[1:])}

    # =========================================================================
    # ScoreRepository - actions
    # =========================================================================

    def upsert_actions(
        self,
        score_date: date,
        actions: list[Action],
        generated_at: datetime,
    ) -> int:
        """
        Upsert a batch of actions keyed by (date, pillar, key), then record
        generated_at as the date's latest run. The run is recorded even when
        the batch is empty.
        """
        try:
            written = self._upsert_rows(
                "score_actions_daily",
                ["score_date", "pillar", "action_key"],
                [
                    "severity",
                    "title",
                    "description",
                    "impact_points",
                    "metadata",
                    "generated_at",
                ],
                [
                    {
                        "score_date": score_date,
                        "pillar": action.pillar.value,
                        "action_key": action.key,
                        "severity": action.severity.value,
                        "title": action.title,
                        "description": action.description,
                        "impact_points": action.impact_points,
                        "metadata": json.dumps(action.metadata, sort_keys=True),
                        "generated_at": generated_at,
                    }
                    for action in actions
                ],
                touch_updated_at=False,
            )
            self._upsert_rows(
                "score_action_runs",
                ["score_date"],
                ["generated_at"],
                [{"score_date": score_date, "generated_at": generated_at}],
                touch_updated_at=False,
            )
            logger.info(
                "actions_upserted", score_date=score_date.isoformat(), count=written
            )
            return written

        except Exception as e:
            logger.error(
                "upsert_actions_failed", score_date=score_date.isoformat(), error=str(e)
            )
            raise StorageError(f"Failed to upsert actions: {e}") from e

    def read_actions(
        self,
        score_date: date,
        pillar: Optional[Pillar] = None,
        latest_run_only: bool = False,
    ) -> list[ActionRecord]:
        """Read stored actions for a date, highest impact first."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT score_date, pillar, action_key, severity, title, description,
                           impact_points, metadata, generated_at
                    FROM score_actions_daily
                    WHERE score_date = ?
                """
                params: list = [score_date]

                if pillar:
                    query += " AND pillar = ?"
                    params.append(Pillar(pillar).value)

                if latest_run_only:
                    query += """
                        AND generated_at = (
                            SELECT generated_at FROM score_action_runs
                            WHERE score_date = ?
                        )
                    """
                    params.append(score_date)

                query += " ORDER BY impact_points DESC, pillar ASC, action_key ASC"

                result = conn.execute(query, params).fetchall()

            return [
                ActionRecord(
                    score_date=row[0],
                    pillar=row[1],
                    key=row[2],
                    severity=row[3],
                    title=row[4],
                    description=row[5],
                    impact_points=row[6],
                    metadata=json.loads(row[7]) if row[7] else {},
                    generated_at=row[8],
                )
                for row in result
            ]

        except Exception as e:
            logger.error("read_actions_failed", score_date=score_date.isoformat(), error=str(e))
            raise StorageError(f"Failed to read actions: {e}") from e

    # =========================================================================
    # ScoreRepository - alert rules and alerts
    # =========================================================================

    def write_alert_rule(self, rule: AlertRule) -> str:
        """Insert or overwrite an alert rule."""
        try:
            self._upsert_rows(
                "alert_rules",
                ["rule_id"],
                ["type", "thresholds", "lookback_days", "severity", "enabled"],
                [
                    {
                        "rule_id": rule.rule_id,
                        "type": rule.type.value,
                        "thresholds": json.dumps(rule.thresholds, sort_keys=True),
                        "lookback_days": rule.lookback_days,
                        "severity": rule.severity.value,
                        "enabled": rule.enabled,
                    }
                ],
            )
            logger.info("alert_rule_written", rule_id=rule.rule_id, type=rule.type.value)
            return rule.rule_id

        except Exception as e:
            logger.error("write_alert_rule_failed", rule_id=rule.rule_id, error=str(e))
            raise StorageError(f"Failed to write alert rule: {e}") from e

    def read_alert_rules(self, enabled: Optional[bool] = None) -> list[AlertRule]:
        """Read alert rules with optional enabled filter."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT rule_id, type, thresholds, lookback_days, severity, enabled
                    FROM alert_rules
                    WHERE 1=1
                """
                params: list = []

                if enabled is not None:
                    query += " AND enabled = ?"
                    params.append(enabled)

                query += " ORDER BY rule_id ASC"

                result = conn.execute(query, params).fetchall()

            return [
                AlertRule(
                    rule_id=row[0],
                    type=row[1],
                    thresholds=json.loads(row[2]),
                    lookback_days=row[3],
                    severity=row[4],
                    enabled=row[5],
                )
                for row in result
            ]

        except Exception as e:
            logger.error("read_alert_rules_failed", error=str(e))
            raise StorageError(f"Failed to read alert rules: {e}") from e

    def write_alert(self, alert: Alert) -> str:
        """Insert or overwrite an alert."""
        try:
            self._upsert_rows(
                "alerts",
                ["alert_id"],
                [
                    "type",
                    "severity",
                    "entity_type",
                    "entity_key",
                    "message",
                    "details",
                    "status",
                    "created_at",
                ],
                [
                    {
                        "alert_id": alert.alert_id,
                        "type": alert.type.value,
                        "severity": alert.severity.value,
                        "entity_type": alert.entity_type,
                        "entity_key": alert.entity_key,
                        "message": alert.message,
                        "details": json.dumps(alert.details, sort_keys=True),
                        "status": alert.status.value,
                        "created_at": alert.created_at,
                    }
                ],
                touch_updated_at=False,
            )
            logger.info("alert_written", alert_id=alert.alert_id, type=alert.type.value)
            return alert.alert_id

        except Exception as e:
            logger.error("write_alert_failed", alert_id=alert.alert_id, error=str(e))
            raise StorageError(f"Failed to write alert: {e}") from e

    @staticmethod
    def _row_to_alert(row: tuple) -> Alert:
        return Alert(
            alert_id=row[0],
            type=row[1],
            severity=row[2],
            entity_type=row[3],
            entity_key=row[4],
            message=row[5],
            details=json.loads(row[6]) if row[6] else {},
            status=row[7],
            created_at=row[8],
        )

    _ALERT_COLUMNS = """
        alert_id, type, severity, entity_type, entity_key,
        message, details, status, created_at
    """

    def find_recent_alert(
        self, alert_type: AlertType, entity_key: str, since: datetime
    ) -> Optional[Alert]:
        """Find an active alert of this type and entity created since `since`."""
        row = self._fetchone(
            "find_recent_alert",
            f"""
            SELECT {self._ALERT_COLUMNS}
            FROM alerts
            WHERE type = ? AND entity_key = ? AND status = ? AND created_at >= ?
            ORDER BY created_at DESC
            LIMIT 1
            """,
            [AlertType(alert_type).value, entity_key, AlertStatus.ACTIVE.value, since],
        )
        return self._row_to_alert(row) if row else None

    def read_alerts(
        self, status: Optional[AlertStatus] = None, limit: int = 100
    ) -> list[Alert]:
        """Read alerts, newest first."""
        try:
            with self._get_connection() as conn:
                query = f"SELECT {self._ALERT_COLUMNS} FROM alerts WHERE 1=1"
                params: list = []

                if status:
                    query += " AND status = ?"
                    params.append(AlertStatus(status).value)

                query += " ORDER BY created_at DESC LIMIT ?"
                params.append(limit)

                result = conn.execute(query, params).fetchall()

            return [self._row_to_alert(row) for row in result]

        except Exception as e:
            logger.error("read_alerts_failed", error=str(e))
            raise StorageError(f"Failed to read alerts: {e}") from e
