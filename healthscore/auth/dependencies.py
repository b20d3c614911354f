"""
FastAPI dependencies for authenticating the daily scheduler.
"""

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from healthscore.config import get_settings
from healthscore.utils.logging import get_logger

logger = get_logger(__name__)


async def verify_cron_token(
    x_cron_token: Optional[str] = Header(default=None, alias="X-CRON-TOKEN"),
) -> None:
    """
    Require the X-CRON-TOKEN header to match the configured CRON_SECRET.

    Raises:
        HTTPException: 500 if no secret is configured, 401 if the header is
            missing or wrong
    """
    expected = get_settings().cron_secret

    if not expected:
        logger.error("auth_failed", reason="cron_secret_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="CRON_SECRET is not configured",
        )

    if not x_cron_token:
        logger.warning("auth_failed", reason="missing_cron_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing cron token",
        )

    if not secrets.compare_digest(x_cron_token, expected):
        logger.warning("auth_failed", reason="invalid_cron_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron token",
        )

    logger.debug("auth_success", caller="cron")
