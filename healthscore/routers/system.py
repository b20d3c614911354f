"""
System router: storage health, score freshness and non-secret configuration.
"""

import time
from datetime import datetime

from fastapi import APIRouter

from healthscore import __version__
from healthscore.config import get_settings
from healthscore.storage import get_storage
from healthscore.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

_started_at = time.monotonic()

# Yesterday is scored each day, so a healthy pipeline is never more than this far behind
MAX_SCORE_LAG_DAYS = 2


@router.get("/health")
async def system_health():
    """
    Report storage connectivity and whether the daily job is keeping up.

    status is "degraded" when storage cannot be read or the newest snapshot
    is more than MAX_SCORE_LAG_DAYS behind today (UTC).
    """
    database = "healthy"
    latest_score_date = None
    score_lag_days = None

    try:
        latest = get_storage().read_latest_score_snapshot()
    except Exception as e:
        logger.error("health_check_database_failed", error=str(e))
        database = "unhealthy"
        latest = None

    if latest is not None:
        latest_score_date = latest.score_date.isoformat()
        score_lag_days = (datetime.utcnow().date() - latest.score_date).days

    scores_fresh = score_lag_days is not None and score_lag_days <= MAX_SCORE_LAG_DAYS

    return {
        "success": True,
        "data": {
            "status": "healthy" if database == "healthy" else "degraded",
            "version": __version__,
            "uptime_seconds": round(time.monotonic() - _started_at, 1),
            "database": database,
            "latest_score_date": latest_score_date,
            "score_lag_days": score_lag_days,
            "scores_fresh": scores_fresh,
        },
    }


@router.get("/config")
async def get_system_config():
    """Configured sources and feature flags; secrets are reported as booleans only."""
    settings = get_settings()

    return {
        "success": True,
        "data": {
            "log_level": settings.log_level,
            "trailing_window_days": settings.trailing_window_days,
            "alert_dedup_hours": settings.alert_dedup_hours,
            "sources": {
                "search_console": bool(settings.gsc_site_url),
                "analytics": bool(settings.ga4_property_id),
                "pagespeed": settings.pagespeed_enabled,
            },
            "feature_flags": {
                "alerts": settings.alerts_enabled,
                "cron_trigger": bool(settings.cron_secret),
            },
        },
    }
