#!/usr/bin/env python3
"""
Daily scoring job: score, actions, then alerts for one date.

Intended to be invoked once per day by cron. Scores yesterday (UTC) unless
a date is given. Exits non-zero when scoring fails so the scheduler can
retry.

Usage:
    python scripts/run_daily_scoring.py
    python scripts/run_daily_scoring.py --date 2026-01-15
    python scripts/run_daily_scoring.py --seed-alert-rules --no-alerts
"""

import argparse
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from healthscore.config import ConfigurationError, get_settings
from healthscore.engine.alerts import AlertEngine
from healthscore.engine.pipeline import run_daily_scoring
from healthscore.storage import StorageError, get_storage
from healthscore.utils.logging import configure_logging, get_logger, scoring_run_context

logger = get_logger(__name__)


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the daily health score job")
    parser.add_argument(
        "--date",
        type=parse_date,
        default=None,
        help="Date to score (YYYY-MM-DD, default: yesterday UTC)",
    )
    parser.add_argument("--no-alerts", action="store_true", help="Skip alert rule evaluation")
    parser.add_argument(
        "--seed-alert-rules",
        action="store_true",
        help="Write the default alert rules before running",
    )
    args = parser.parse_args(argv)

    configure_logging()
    settings = get_settings()
    storage = get_storage()

    score_date = args.date or (datetime.utcnow().date() - timedelta(days=1))

    try:
        if args.seed_alert_rules:
            AlertEngine(storage, settings).seed_default_rules()

        with scoring_run_context(score_date, trigger="cli"):
            result = run_daily_scoring(
                storage,
                settings,
                score_date,
                run_alerts=False if args.no_alerts else None,
            )
    except (ConfigurationError, StorageError) as e:
        logger.error("daily_job_failed", score_date=score_date.isoformat(), error=str(e))
        return 1

    print(f"Score for {score_date.isoformat()}: {result.total_score}/1000")
    for pillar, pillar_result in result.snapshot.breakdown.pillars().items():
        print(f"  {pillar.value}: {pillar_result.score}/{pillar_result.max_score}")
    print(f"Actions: {len(result.actions)}")
    for action in result.actions:
        print(f"  [{action.severity.value}] {action.pillar.value} {action.title}")
    if result.alerts_evaluated:
        print(f"New alerts: {len(result.alerts)}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
