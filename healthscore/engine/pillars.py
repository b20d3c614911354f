"""
Pillar Calculators - the five weighted categories of the health score.

Each calculator reads one disjoint slice of the daily metrics through the
MetricsReader, normalizes it, and returns a PillarResult whose components
are rounded before they are summed. Calculators hold no state and do not
depend on each other, so the aggregator may run them in any order.

    P1 Index & Crawl Health   250   impressions_trend, index_coverage, crawl_errors
    P2 Search Visibility      250   clicks_trend, top_queries_performance, avg_position
    P3 Engagement & Intent    200   ctr_quality, engagement_rate, returning_users
    P4 Content Performance    200   top_pages_growth, content_depth, conversion_quality
    P5 Technical Experience   100   core_web_vitals, mobile_usability

Trailing baselines cover the configured window strictly before the scored
date. An empty window uses the current value as its own baseline, which puts
the trend component on its neutral midpoint.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from healthscore.config import Settings
from healthscore.models.enums import Pillar
from healthscore.models.scores import PILLAR_MAX_SCORES, PillarResult
from healthscore.storage.base import MetricsReader

from .normalization import norm_linear, norm_log, pct_change, round_points

logger = structlog.get_logger()


# ============================================================================
# Normalization ranges
# ============================================================================

# Trend components: pct change mapped from [low, high] onto [0, 1]
IMPRESSIONS_TREND_RANGE = (-0.2, 0.2)
CLICKS_TREND_RANGE = (-0.2, 0.2)
PAGES_GROWTH_RANGE = (-0.1, 0.1)

TOP_QUERY_MAX_POSITION = 10.0
TOP_QUERIES_BASELINE = 10
TOP_QUERIES_SCALE = 5

# Missing or zero position is treated as page 5
DEFAULT_POSITION = 50.0

CTR_RANGE = (0.02, 0.08)
ENGAGEMENT_RATE_RANGE = (0.3, 0.7)
RETURNING_RATIO_RANGE = (0.1, 0.4)
ENGAGEMENT_SECONDS_RANGE = (30.0, 120.0)
CONVERSION_RATE_RANGE = (0.01, 0.05)

PAGESPEED_DEFAULTS = {
    "performance": 50.0,
    "lcp": 2500.0,  # ms
    "cls": 0.1,
}

# P5 when PageSpeed is not configured
P5_NEUTRAL_COMPONENTS = {"core_web_vitals": 25, "mobile_usability": 25}


def _pillar_result(pillar: Pillar, components: dict[str, float]) -> PillarResult:
    rounded = {name: round_points(points) for name, points in components.items()}
    return PillarResult(
        score=sum(rounded.values()),
        max_score=PILLAR_MAX_SCORES[pillar],
        components=rounded,
    )


def _trend(current: float, baseline: Optional[float], low: float, high: float) -> float:
    if baseline is None:
        baseline = current
    return norm_linear(pct_change(current, baseline), low, high)


def calculate_p1(reader: MetricsReader, score_date: date, settings: Settings) -> PillarResult:
    """
    P1 Index & Crawl Health (0-250).

    impressions_trend (0-100) compares today's impressions with the trailing
    average. Index coverage (0-100) and crawl errors (0-50) are inferred from
    whether the site received any impressions at all.
    """
    site_url = settings.require_site_url()

    site = reader.read_site_metrics(site_url, score_date)
    trailing = reader.read_site_trailing_averages(
        site_url, score_date, days=settings.trailing_window_days
    )

    impressions = site.impressions if site else 0

    return _pillar_result(
        Pillar.P1,
        {
            "impressions_trend": _trend(
                impressions, trailing.impressions, *IMPRESSIONS_TREND_RANGE
            )
            * 100,
            "index_coverage": 100 if impressions > 0 else 0,
            "crawl_errors": 50 if impressions > 0 else 0,
        },
    )


def calculate_p2(reader: MetricsReader, score_date: date, settings: Settings) -> PillarResult:
    """
    P2 Search Visibility (0-250).

    clicks_trend (0-100), top_queries_performance (0-100) from the number of
    queries ranking in the top 10, and avg_position (0-50) where position 10
    or better earns full points and position 50 or worse earns none.
    """
    site_url = settings.require_site_url()

    site = reader.read_site_metrics(site_url, score_date)
    trailing = reader.read_site_trailing_averages(
        site_url, score_date, days=settings.trailing_window_days
    )
    top_queries = reader.count_top_queries(
        site_url, score_date, max_position=TOP_QUERY_MAX_POSITION
    )

    clicks = site.clicks if site else 0
    position = site.position if site and site.position else DEFAULT_POSITION

    return _pillar_result(
        Pillar.P2,
        {
            "clicks_trend": _trend(clicks, trailing.clicks, *CLICKS_TREND_RANGE) * 100,
            "top_queries_performance": norm_log(
                top_queries, TOP_QUERIES_BASELINE, TOP_QUERIES_SCALE
            )
            * 100,
            "avg_position": norm_linear(DEFAULT_POSITION - position, 0, 40) * 50,
        },
    )


def calculate_p3(reader: MetricsReader, score_date: date, settings: Settings) -> PillarResult:
    """P3 Engagement & Intent (0-200): search CTR, GA4 engagement, returning users."""
    site_url = settings.require_site_url()
    property_id = settings.require_property_id()

    site = reader.read_site_metrics(site_url, score_date)
    landing = reader.read_landing_aggregates(property_id, score_date)

    ctr = site.ctr if site else 0.0
    engagement_rate = landing.avg_engagement_rate or 0.0

    return _pillar_result(
        Pillar.P3,
        {
            "ctr_quality": norm_linear(ctr, *CTR_RANGE) * 80,
            "engagement_rate": norm_linear(engagement_rate, *ENGAGEMENT_RATE_RANGE) * 80,
            "returning_users": norm_linear(landing.returning_ratio, *RETURNING_RATIO_RANGE)
            * 40,
        },
    )


def calculate_p4(reader: MetricsReader, score_date: date, settings: Settings) -> PillarResult:
    """
    P4 Content Performance (0-200).

    top_pages_growth (0-80) compares today's ranked-page count with the
    trailing daily average; content_depth (0-80) uses average engagement
    time; conversion_quality (0-40) uses organic conversions per session.
    """
    site_url = settings.require_site_url()
    property_id = settings.require_property_id()

    page_count = reader.count_ranked_pages(site_url, score_date)
    trailing_page_count = reader.read_page_count_trailing_average(
        site_url, score_date, days=settings.trailing_window_days
    )
    landing = reader.read_landing_aggregates(property_id, score_date)

    engagement_seconds = landing.avg_engagement_time_seconds or 0.0

    return _pillar_result(
        Pillar.P4,
        {
            "top_pages_growth": _trend(page_count, trailing_page_count, *PAGES_GROWTH_RANGE)
            * 80,
            "content_depth": norm_linear(engagement_seconds, *ENGAGEMENT_SECONDS_RANGE) * 80,
            "conversion_quality": norm_linear(landing.conversion_rate, *CONVERSION_RATE_RANGE)
            * 40,
        },
    )


def calculate_p5(reader: MetricsReader, score_date: date, settings: Settings) -> PillarResult:
    """
    P5 Technical Experience (0-100).

    Without a PageSpeed API key the pillar is neutral: exactly 50 points.
    Otherwise core_web_vitals (0-70) combines LCP (0-30) and CLS (0-40), and
    mobile_usability (0-30) uses the lab performance score.
    """
    if not settings.pagespeed_enabled:
        logger.debug("pagespeed_disabled_neutral_p5", score_date=score_date.isoformat())
        return PillarResult(
            score=sum(P5_NEUTRAL_COMPONENTS.values()),
            max_score=PILLAR_MAX_SCORES[Pillar.P5],
            components=dict(P5_NEUTRAL_COMPONENTS),
        )

    pagespeed = reader.read_pagespeed_aggregates(score_date)

    # A zero average means nothing usable was measured
    performance = pagespeed.avg_performance or PAGESPEED_DEFAULTS["performance"]
    lcp = pagespeed.avg_lcp or PAGESPEED_DEFAULTS["lcp"]
    cls = pagespeed.avg_cls or PAGESPEED_DEFAULTS["cls"]

    lcp_points = norm_linear(4000 - lcp, 0, 2000) * 30
    cls_points = norm_linear(0.25 - cls, 0, 0.15) * 40

    return _pillar_result(
        Pillar.P5,
        {
            "core_web_vitals": lcp_points + cls_points,
            "mobile_usability": norm_linear(performance, 50, 90) * 30,
        },
    )


PillarCalculator = Callable[[MetricsReader, date, Settings], PillarResult]

PILLAR_CALCULATORS: tuple[tuple[Pillar, PillarCalculator], ...] = (
    (Pillar.P1, calculate_p1),
    (Pillar.P2, calculate_p2),
    (Pillar.P3, calculate_p3),
    (Pillar.P4, calculate_p4),
    (Pillar.P5, calculate_p5),
)
