#!/usr/bin/env python3
"""
Demo Metrics Seeder

Generates daily Search Console, GA4 and PageSpeed rows for a demo site so
the scoring job, actions and alerts have something to work with. The last
few days carry an injected visibility dip, which fires the impressions,
clicks and score-drop checks.

Usage:
    python scripts/seed_demo_metrics.py
    python scripts/seed_demo_metrics.py --days 60 --seed 7
    python scripts/seed_demo_metrics.py --days 30 --score
"""

import argparse
import random
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import structlog

sys.path.insert(0, str(Path(__file__).parent.parent))

from healthscore.config import get_settings
from healthscore.engine.alerts import AlertEngine
from healthscore.engine.pipeline import run_daily_scoring
from healthscore.models.metrics import (
    LandingDailyMetrics,
    PageDailyMetrics,
    PageSpeedDailyMetrics,
    QueryDailyMetrics,
    SiteDailyMetrics,
)
from healthscore.storage import get_storage
from healthscore.utils.logging import configure_logging, scoring_run_context

logger = structlog.get_logger()

DEMO_SITE_URL = "https://demo.example.com/"
DEMO_PROPERTY_ID = "properties/123456789"

DEMO_PAGES = [
    "/",
    "/pricing",
    "/features",
    "/blog/accessibility-checklist",
    "/blog/wcag-22-changes",
    "/blog/alt-text-guide",
    "/contact",
    "/about",
]

DEMO_QUERIES = [
    "accessibility checker",
    "wcag audit tool",
    "website accessibility scan",
    "alt text generator",
    "wcag 2.2 checklist",
    "accessibility compliance",
    "screen reader testing",
    "color contrast checker",
    "aria labels guide",
    "keyboard navigation test",
    "accessibility report",
    "ada website compliance",
]

# Days at the end of the range with depressed visibility
DIP_DAYS = 3
DIP_FACTOR = 0.55


class DemoMetricsGenerator:
    """
    Generates a deterministic metric history for one demo site.

    Attributes:
        site_url: Search Console property written to every GSC row
        property_id: GA4 property written to every landing row
        rng: Seeded random source
    """

    def __init__(self, site_url: str, property_id: str, seed: int = 42):
        self.site_url = site_url
        self.property_id = property_id
        self.rng = random.Random(seed)

    def generate_day(self, metric_date: date, visibility: float) -> dict[str, list]:
        """Build all metric rows for one day at the given visibility factor."""
        pages = []
        for rank, page in enumerate(DEMO_PAGES):
            impressions = int((1200 / (rank + 1)) * visibility * self.rng.uniform(0.85, 1.15))
            ctr = self.rng.uniform(0.015, 0.07)
            pages.append(
                PageDailyMetrics(
                    metric_date=metric_date,
                    site_url=self.site_url,
                    page=page,
                    clicks=int(impressions * ctr),
                    impressions=impressions,
                    ctr=ctr,
                    position=self.rng.uniform(3, 25) / visibility,
                )
            )

        queries = [
            QueryDailyMetrics(
                metric_date=metric_date,
                site_url=self.site_url,
                query=query,
                clicks=self.rng.randint(0, 40),
                impressions=self.rng.randint(50, 600),
                ctr=self.rng.uniform(0.01, 0.08),
                position=self.rng.uniform(2, 30) / visibility,
            )
            for query in DEMO_QUERIES
        ]

        impressions = sum(p.impressions for p in pages)
        clicks = sum(p.clicks for p in pages)
        site = SiteDailyMetrics(
            metric_date=metric_date,
            site_url=self.site_url,
            clicks=clicks,
            impressions=impressions,
            ctr=clicks / impressions if impressions else 0.0,
            position=sum(p.position for p in pages) / len(pages),
        )

        landings = []
        for page in DEMO_PAGES:
            sessions = self.rng.randint(40, 400)
            total_users = int(sessions * self.rng.uniform(0.7, 0.95))
            landings.append(
                LandingDailyMetrics(
                    metric_date=metric_date,
                    property_id=self.property_id,
                    landing_page=page,
                    engagement_rate=self.rng.uniform(0.35, 0.75),
                    avg_engagement_time_seconds=self.rng.uniform(35, 150),
                    returning_users=int(total_users * self.rng.uniform(0.1, 0.35)),
                    total_users=total_users,
                    organic_sessions=sessions,
                    conversions=round(sessions * self.rng.uniform(0.01, 0.05)),
                )
            )

        pagespeed = [
            PageSpeedDailyMetrics(
                metric_date=metric_date,
                url=self.site_url.rstrip("/") + page,
                strategy="mobile",
                performance_score=self.rng.uniform(55, 95),
                lcp=self.rng.uniform(1800, 3600),
                cls=self.rng.uniform(0.02, 0.2),
            )
            for page in DEMO_PAGES[:3]
        ]

        return {
            "site": [site],
            "queries": queries,
            "pages": pages,
            "landings": landings,
            "pagespeed": pagespeed,
        }


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed demo health score metrics")
    parser.add_argument("--days", type=int, default=30, help="Days of history to generate")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument(
        "--score",
        action="store_true",
        help="Run the daily job for every seeded day after writing metrics",
    )
    args = parser.parse_args(argv)

    configure_logging()
    settings = get_settings()
    storage = get_storage()

    site_url = settings.gsc_site_url or DEMO_SITE_URL
    property_id = settings.ga4_property_id or DEMO_PROPERTY_ID

    generator = DemoMetricsGenerator(site_url, property_id, seed=args.seed)
    end = datetime.utcnow().date() - timedelta(days=1)
    dates = [end - timedelta(days=offset) for offset in range(args.days - 1, -1, -1)]

    print(f"Seeding {args.days} days of metrics for {site_url} ({dates[0]} .. {dates[-1]})")

    for index, metric_date in enumerate(dates):
        in_dip = index >= len(dates) - DIP_DAYS
        rows = generator.generate_day(metric_date, DIP_FACTOR if in_dip else 1.0)
        storage.upsert_site_metrics(rows["site"])
        storage.upsert_query_metrics(rows["queries"])
        storage.upsert_page_metrics(rows["pages"])
        storage.upsert_landing_metrics(rows["landings"])
        storage.upsert_pagespeed_metrics(rows["pagespeed"])

    logger.info("demo_metrics_seeded", days=args.days, site_url=site_url)

    if args.score:
        if not (settings.gsc_site_url and settings.ga4_property_id):
            print("Set GSC_SITE_URL and GA4_PROPERTY_ID to score the seeded data.")
            return 1

        AlertEngine(storage, settings).seed_default_rules()
        for metric_date in dates:
            with scoring_run_context(metric_date, trigger="seed"):
                result = run_daily_scoring(storage, settings, metric_date)
            print(
                f"  {metric_date.isoformat()}: {result.total_score}/1000 "
                f"({len(result.actions)} actions, {len(result.alerts)} new alerts)"
            )

    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
