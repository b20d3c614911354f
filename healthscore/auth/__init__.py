"""Shared-secret authentication for scheduler-triggered endpoints."""

from healthscore.auth.dependencies import verify_cron_token

__all__ = ["verify_cron_token"]
