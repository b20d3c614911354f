"""
Daily metric models.

Row models mirror the tables the ingestion jobs populate (Search Console,
GA4, PageSpeed). Aggregate models are what the MetricsReader hands to the
pillar calculators; a None field means "no rows", which is different from a
legitimate zero.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# Ingested daily rows
# ============================================================================


class SiteDailyMetrics(BaseModel):
    """Site-level Search Console totals for one day."""

    metric_date: date
    site_url: str
    clicks: int = Field(default=0, ge=0)
    impressions: int = Field(default=0, ge=0)
    ctr: float = Field(default=0.0, ge=0.0)
    position: float = Field(default=0.0, ge=0.0)


class QueryDailyMetrics(BaseModel):
    """Search Console metrics for one query on one day."""

    metric_date: date
    site_url: str
    query: str
    clicks: int = Field(default=0, ge=0)
    impressions: int = Field(default=0, ge=0)
    ctr: float = Field(default=0.0, ge=0.0)
    position: float = Field(default=0.0, ge=0.0)


class PageDailyMetrics(BaseModel):
    """Search Console metrics for one ranked page on one day."""

    metric_date: date
    site_url: str
    page: str
    clicks: int = Field(default=0, ge=0)
    impressions: int = Field(default=0, ge=0)
    ctr: float = Field(default=0.0, ge=0.0)
    position: float = Field(default=0.0, ge=0.0)


class LandingDailyMetrics(BaseModel):
    """GA4 organic landing-page metrics for one day."""

    metric_date: date
    property_id: str
    landing_page: str
    engagement_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    avg_engagement_time_seconds: float = Field(default=0.0, ge=0.0)
    returning_users: int = Field(default=0, ge=0)
    total_users: int = Field(default=0, ge=0)
    organic_sessions: int = Field(default=0, ge=0)
    conversions: float = Field(default=0.0, ge=0.0)


class PageSpeedDailyMetrics(BaseModel):
    """PageSpeed Insights lab results for one URL on one day."""

    metric_date: date
    url: str
    strategy: str = "mobile"
    performance_score: float = Field(ge=0.0, le=100.0)
    lcp: float = Field(ge=0.0, description="Largest Contentful Paint in milliseconds")
    cls: float = Field(ge=0.0, description="Cumulative Layout Shift")


# ============================================================================
# Aggregates returned by the MetricsReader
# ============================================================================


class SiteTrailingAverages(BaseModel):
    """Averages of site-level metrics over a trailing window (None: no rows)."""

    days_with_data: int = 0
    impressions: Optional[float] = None
    clicks: Optional[float] = None
    ctr: Optional[float] = None
    position: Optional[float] = None


class LandingAggregates(BaseModel):
    """GA4 landing metrics for one day, aggregated across landing pages."""

    avg_engagement_rate: Optional[float] = None
    avg_engagement_time_seconds: Optional[float] = None
    returning_users: int = 0
    total_users: int = 0
    conversions: float = 0.0
    organic_sessions: int = 0

    @property
    def returning_ratio(self) -> float:
        if self.returning_users and self.total_users:
            return self.returning_users / self.total_users
        return 0.0

    @property
    def conversion_rate(self) -> float:
        if self.organic_sessions > 0:
            return self.conversions / self.organic_sessions
        return 0.0


class PageSpeedAggregates(BaseModel):
    """PageSpeed averages for one day across all measured URLs."""

    avg_performance: Optional[float] = None
    avg_lcp: Optional[float] = None
    avg_cls: Optional[float] = None
