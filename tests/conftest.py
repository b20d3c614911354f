"""
Pytest configuration and shared fixtures for the health score test suite.

Provides metric and breakdown factories, an in-memory MockStorage that
mirrors the DuckDB backend's read semantics, environment isolation, and
fixtures shared across unit, golden, property and integration tests.
"""

import os
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing the app.
# Use a temp path (must not exist - DuckDB creates the file). :memory: gives
# each connection its own database, which breaks thread-local connections.
import tempfile
import uuid as _uuid

_test_db_path = os.path.join(
    tempfile.gettempdir(), f"healthscore_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["GSC_SITE_URL"] = "https://example.com/"
os.environ["GA4_PROPERTY_ID"] = "properties/1000"
os.environ["PAGESPEED_API_KEY"] = ""
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["LOG_FORMAT"] = "console"


from healthscore.config import Settings
from healthscore.models.actions import ActionRecord
from healthscore.models.enums import AlertStatus, Pillar
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
from healthscore.models.scores import PILLAR_MAX_SCORES, PillarResult, ScoreBreakdown, ScoreSnapshot

SITE_URL = "https://example.com/"
PROPERTY_ID = "properties/1000"
SCORE_DATE = date(2026, 1, 15)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_settings(**overrides) -> Settings:
    """Settings with both sources configured and PageSpeed disabled."""
    defaults = dict(
        gsc_site_url=SITE_URL,
        ga4_property_id=PROPERTY_ID,
        pagespeed_api_key="",
        trailing_window_days=7,
        alerts_enabled=True,
        alert_dedup_hours=24,
        cron_secret="test-cron-secret",
    )
    defaults.update(overrides)
    return Settings(**defaults)


def make_site_metrics(
    metric_date: date = SCORE_DATE,
    impressions: int = 1000,
    clicks: int = 50,
    ctr: float = 0.05,
    position: float = 15.0,
    site_url: str = SITE_URL,
) -> SiteDailyMetrics:
    """Factory function for site-level Search Console rows."""
    return SiteDailyMetrics(
        metric_date=metric_date,
        site_url=site_url,
        clicks=clicks,
        impressions=impressions,
        ctr=ctr,
        position=position,
    )


def make_query_metrics(
    query: str,
    position: float,
    metric_date: date = SCORE_DATE,
    impressions: int = 100,
    clicks: int = 5,
) -> QueryDailyMetrics:
    """Factory function for query rows."""
    return QueryDailyMetrics(
        metric_date=metric_date,
        site_url=SITE_URL,
        query=query,
        clicks=clicks,
        impressions=impressions,
        ctr=clicks / impressions if impressions else 0.0,
        position=position,
    )


def make_page_metrics(
    page: str,
    metric_date: date = SCORE_DATE,
    impressions: int = 200,
    clicks: int = 10,
    ctr: Optional[float] = None,
    position: float = 12.0,
) -> PageDailyMetrics:
    """Factory function for page rows."""
    return PageDailyMetrics(
        metric_date=metric_date,
        site_url=SITE_URL,
        page=page,
        clicks=clicks,
        impressions=impressions,
        ctr=ctr if ctr is not None else (clicks / impressions if impressions else 0.0),
        position=position,
    )


def make_landing_metrics(
    landing_page: str = "/",
    metric_date: date = SCORE_DATE,
    engagement_rate: float = 0.5,
    avg_engagement_time_seconds: float = 75.0,
    returning_users: int = 20,
    total_users: int = 100,
    organic_sessions: int = 200,
    conversions: float = 6.0,
) -> LandingDailyMetrics:
    """Factory function for GA4 landing rows."""
    return LandingDailyMetrics(
        metric_date=metric_date,
        property_id=PROPERTY_ID,
        landing_page=landing_page,
        engagement_rate=engagement_rate,
        avg_engagement_time_seconds=avg_engagement_time_seconds,
        returning_users=returning_users,
        total_users=total_users,
        organic_sessions=organic_sessions,
        conversions=conversions,
    )


def make_pagespeed_metrics(
    url: str = "https://example.com/",
    metric_date: date = SCORE_DATE,
    performance_score: float = 70.0,
    lcp: float = 2400.0,
    cls: float = 0.1,
) -> PageSpeedDailyMetrics:
    """Factory function for PageSpeed rows."""
    return PageSpeedDailyMetrics(
        metric_date=metric_date,
        url=url,
        strategy="mobile",
        performance_score=performance_score,
        lcp=lcp,
        cls=cls,
    )


# Component budgets per pillar; make_breakdown starts every component at its max
COMPONENT_MAXIMUMS: dict[Pillar, dict[str, int]] = {
    Pillar.P1: {"impressions_trend": 100, "index_coverage": 100, "crawl_errors": 50},
    Pillar.P2: {"clicks_trend": 100, "top_queries_performance": 100, "avg_position": 50},
    Pillar.P3: {"ctr_quality": 80, "engagement_rate": 80, "returning_users": 40},
    Pillar.P4: {"top_pages_growth": 80, "content_depth": 80, "conversion_quality": 40},
    Pillar.P5: {"core_web_vitals": 70, "mobile_usability": 30},
}


def make_breakdown(**component_overrides: int) -> ScoreBreakdown:
    """
    Build a ScoreBreakdown from component values.

    Every component defaults to its maximum (no action rule fires); keyword
    arguments override individual components by name.
    """
    pillars = {}
    for pillar, maximums in COMPONENT_MAXIMUMS.items():
        components = {
            name: component_overrides.get(name, maximum) for name, maximum in maximums.items()
        }
        pillars[pillar.field_name] = PillarResult(
            score=sum(components.values()),
            max_score=PILLAR_MAX_SCORES[pillar],
            components=components,
        )
    return ScoreBreakdown(**pillars)


def make_snapshot(score_date: date = SCORE_DATE, **component_overrides: int) -> ScoreSnapshot:
    """Factory function for a ScoreSnapshot built from make_breakdown()."""
    return ScoreSnapshot.from_breakdown(score_date, make_breakdown(**component_overrides))


def trailing_dates(score_date: date = SCORE_DATE, days: int = 7) -> list[date]:
    """The dates of the trailing window before score_date, oldest first."""
    return [score_date - timedelta(days=offset) for offset in range(days, 0, -1)]


# ---------------------------------------------------------------------------
# MockStorage
# ---------------------------------------------------------------------------


def _avg(values: list[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


class MockStorage:
    """
    In-memory mock of StorageBackend for unit tests.

    Reads follow the DuckDB backend: trailing windows cover [date - days, date),
    upserts overwrite by natural key, and empty aggregates come back as None.
    """

    def __init__(self):
        self._site: dict[tuple, SiteDailyMetrics] = {}
        self._queries: dict[tuple, QueryDailyMetrics] = {}
        self._pages: dict[tuple, PageDailyMetrics] = {}
        self._landings: dict[tuple, LandingDailyMetrics] = {}
        self._pagespeed: dict[tuple, PageSpeedDailyMetrics] = {}
        self._snapshots: dict[date, ScoreSnapshot] = {}
        self._actions: dict[tuple, ActionRecord] = {}
        self._alert_rules: dict = {}
        self._alerts: dict = {}
        self.action_batches: list[datetime] = []
        self._action_runs: dict[date, datetime] = {}

    @staticmethod
    def _in_window(value: date, end: date, days: int) -> bool:
        return end - timedelta(days=days) <= value < end

    # --- Metric writers ---
    def upsert_site_metrics(self, rows):
        for row in rows:
            self._site[(row.metric_date, row.site_url)] = row
        return len(rows)

    def upsert_query_metrics(self, rows):
        for row in rows:
            self._queries[(row.metric_date, row.site_url, row.query)] = row
        return len(rows)

    def upsert_page_metrics(self, rows):
        for row in rows:
            self._pages[(row.metric_date, row.site_url, row.page)] = row
        return len(rows)

    def upsert_landing_metrics(self, rows):
        for row in rows:
            self._landings[(row.metric_date, row.property_id, row.landing_page)] = row
        return len(rows)

    def upsert_pagespeed_metrics(self, rows):
        for row in rows:
            self._pagespeed[(row.metric_date, row.url, row.strategy)] = row
        return len(rows)

    # --- MetricsReader ---
    def read_site_metrics(self, site_url, metric_date):
        return self._site.get((metric_date, site_url))

    def read_site_trailing_averages(self, site_url, metric_date, days=7):
        rows = [
            r
            for (d, s), r in self._site.items()
            if s == site_url and self._in_window(d, metric_date, days)
        ]
        return SiteTrailingAverages(
            days_with_data=len(rows),
            impressions=_avg([r.impressions for r in rows]),
            clicks=_avg([r.clicks for r in rows]),
            ctr=_avg([r.ctr for r in rows]),
            position=_avg([r.position for r in rows]),
        )

    def count_top_queries(self, site_url, metric_date, max_position=10.0):
        return sum(
            1
            for (d, s, _), r in self._queries.items()
            if d == metric_date and s == site_url and r.position <= max_position
        )

    def count_ranked_pages(self, site_url, metric_date):
        return len({p for (d, s, p) in self._pages if d == metric_date and s == site_url})

    def read_page_count_trailing_average(self, site_url, metric_date, days=7):
        counts: dict[date, int] = {}
        for d, s, _ in self._pages:
            if s == site_url and self._in_window(d, metric_date, days):
                counts[d] = counts.get(d, 0) + 1
        return _avg(list(counts.values()))

    def read_landing_aggregates(self, property_id, metric_date):
        rows = [
            r
            for (d, p, _), r in self._landings.items()
            if d == metric_date and p == property_id
        ]
        return LandingAggregates(
            avg_engagement_rate=_avg([r.engagement_rate for r in rows]),
            avg_engagement_time_seconds=_avg([r.avg_engagement_time_seconds for r in rows]),
            returning_users=sum(r.returning_users for r in rows),
            total_users=sum(r.total_users for r in rows),
            conversions=sum(r.conversions for r in rows),
            organic_sessions=sum(r.organic_sessions for r in rows),
        )

    def read_pagespeed_aggregates(self, metric_date):
        rows = [r for (d, _, _), r in self._pagespeed.items() if d == metric_date]
        return PageSpeedAggregates(
            avg_performance=_avg([r.performance_score for r in rows]),
            avg_lcp=_avg([r.lcp for r in rows]),
            avg_cls=_avg([r.cls for r in rows]),
        )

    def read_page_metrics(self, site_url, metric_date, min_impressions=0):
        rows = [
            r
            for (d, s, _), r in self._pages.items()
            if d == metric_date and s == site_url and r.impressions >= min_impressions
        ]
        return sorted(rows, key=lambda r: (-r.impressions, r.page))

    def read_conversion_rate_trailing_average(self, property_id, metric_date, days=7):
        totals: dict[date, list[float]] = {}
        for (d, p, _), r in self._landings.items():
            if p == property_id and self._in_window(d, metric_date, days):
                conv, sessions = totals.get(d, [0.0, 0])
                totals[d] = [conv + r.conversions, sessions + r.organic_sessions]
        return _avg([conv / sessions for conv, sessions in totals.values() if sessions > 0])

    # --- ScoreRepository: snapshots ---
    def upsert_score_snapshot(self, snapshot):
        self._snapshots[snapshot.score_date] = snapshot.model_copy(
            update={"updated_at": datetime.utcnow()}
        )
        return snapshot.score_date

    def read_score_snapshot(self, score_date):
        return self._snapshots.get(score_date)

    def read_latest_score_snapshot(self):
        if not self._snapshots:
            return None
        return self._snapshots[max(self._snapshots)]

    def read_score_snapshots(self, start_date=None, end_date=None):
        return [
            self._snapshots[d]
            for d in sorted(self._snapshots)
            if (start_date is None or d >= start_date) and (end_date is None or d <= end_date)
        ]

    def read_score_trailing_averages(self, score_date, days=7):
        rows = [s for d, s in self._snapshots.items() if self._in_window(d, score_date, days)]
        if not rows:
            return None
        keys = ["total_score", "p1_score", "p2_score", "p3_score", "p4_score", "p5_score"]
        return {key: _avg([getattr(s, key) for s in rows]) for key in keys}

    # --- ScoreRepository: actions ---
    def upsert_actions(self, score_date, actions, generated_at):
        self.action_batches.append(generated_at)
        for action in actions:
            self._actions[(score_date, action.pillar, action.key)] = ActionRecord(
                **action.model_dump(), score_date=score_date, generated_at=generated_at
            )
        self._action_runs[score_date] = generated_at
        return len(actions)

    def read_actions(self, score_date, pillar=None, latest_run_only=False):
        rows = [r for (d, _, _), r in self._actions.items() if d == score_date]
        if pillar:
            rows = [r for r in rows if r.pillar == pillar]
        if latest_run_only:
            latest = self._action_runs.get(score_date)
            rows = [r for r in rows if r.generated_at == latest]
        return sorted(rows, key=lambda r: (-r.impact_points, r.pillar.value, r.key))

    # --- ScoreRepository: alerts ---
    def write_alert_rule(self, rule):
        self._alert_rules[rule.rule_id] = rule
        return rule.rule_id

    def read_alert_rules(self, enabled=None):
        rules = sorted(self._alert_rules.values(), key=lambda r: r.rule_id)
        if enabled is not None:
            rules = [r for r in rules if r.enabled == enabled]
        return rules

    def write_alert(self, alert):
        self._alerts[alert.alert_id] = alert
        return alert.alert_id

    def find_recent_alert(self, alert_type, entity_key, since):
        matches = [
            a
            for a in self._alerts.values()
            if a.type == alert_type
            and a.entity_key == entity_key
            and a.status == AlertStatus.ACTIVE
            and a.created_at >= since
        ]
        return max(matches, key=lambda a: a.created_at) if matches else None

    def read_alerts(self, status=None, limit=100):
        alerts = sorted(self._alerts.values(), key=lambda a: a.created_at, reverse=True)
        if status:
            alerts = [a for a in alerts if a.status == status]
        return alerts[:limit]


def seed_golden_metrics(storage, score_date: date = SCORE_DATE, pagespeed: bool = True) -> None:
    """
    Write the fixed golden dataset for score_date.

    Trailing week: 1000 impressions, 50 clicks and 10 ranked pages per day.
    Scored day: 1100 impressions (+10%), 45 clicks (-10%), 9 ranked pages
    (-10%), 5 top-10 queries, two landing pages and two PageSpeed URLs.
    """
    for day in trailing_dates(score_date):
        storage.upsert_site_metrics([make_site_metrics(metric_date=day)])
        storage.upsert_page_metrics(
            [make_page_metrics(f"/page-{i}", metric_date=day) for i in range(10)]
        )

    storage.upsert_site_metrics(
        [make_site_metrics(metric_date=score_date, impressions=1100, clicks=45)]
    )
    storage.upsert_page_metrics(
        [make_page_metrics(f"/page-{i}", metric_date=score_date) for i in range(9)]
    )
    storage.upsert_query_metrics(
        [
            make_query_metrics(f"query {i}", position=position, metric_date=score_date)
            for i, position in enumerate([3.0, 5.0, 7.0, 9.0, 10.0, 11.0, 20.0, 35.0])
        ]
    )
    storage.upsert_landing_metrics(
        [
            make_landing_metrics(
                "/",
                metric_date=score_date,
                engagement_rate=0.45,
                avg_engagement_time_seconds=90.0,
                returning_users=30,
                total_users=100,
                organic_sessions=200,
                conversions=4,
            ),
            make_landing_metrics(
                "/pricing",
                metric_date=score_date,
                engagement_rate=0.35,
                avg_engagement_time_seconds=60.0,
                returning_users=10,
                total_users=100,
                organic_sessions=200,
                conversions=2,
            ),
        ]
    )
    if pagespeed:
        storage.upsert_pagespeed_metrics(
            [
                make_pagespeed_metrics(
                    "https://example.com/",
                    metric_date=score_date,
                    performance_score=80.0,
                    lcp=2200.0,
                    cls=0.05,
                ),
                make_pagespeed_metrics(
                    "https://example.com/pricing",
                    metric_date=score_date,
                    performance_score=60.0,
                    lcp=2600.0,
                    cls=0.15,
                ),
            ]
        )


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_storage():
    """Fresh MockStorage instance for each test."""
    return MockStorage()


@pytest.fixture
def test_settings():
    """Settings with both sources configured and PageSpeed disabled."""
    return make_settings()


@pytest.fixture
def pagespeed_settings():
    """Settings with PageSpeed enabled."""
    return make_settings(pagespeed_api_key="test-pagespeed-key")


@pytest.fixture
def golden_storage(mock_storage):
    """MockStorage holding the fixed golden dataset."""
    seed_golden_metrics(mock_storage)
    return mock_storage


@pytest.fixture
def duckdb_storage():
    """The process-wide DuckDB test database, cleared before each test."""
    from healthscore.storage import get_storage

    storage = get_storage()
    storage.clear_for_testing()
    return storage


@pytest.fixture
def client():
    """FastAPI test client for integration tests."""
    from healthscore.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def cron_headers():
    """Headers accepted by the cron-protected endpoints."""
    return {
        "X-CRON-TOKEN": "test-cron-secret",
        "X-Request-ID": str(uuid4()),
    }
