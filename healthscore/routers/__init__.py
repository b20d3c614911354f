"""API routers for all endpoints."""

from healthscore.routers import scores, system

__all__ = [
    "scores",
    "system",
]
