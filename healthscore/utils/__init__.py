"""Logging configuration and run-scoped log context."""

from healthscore.utils.logging import configure_logging, get_logger, scoring_run_context

__all__ = ["configure_logging", "get_logger", "scoring_run_context"]
