"""
Health score router.

Wired to:
- run_daily_scoring for scheduler-triggered runs
- StorageBackend for snapshot, action and alert reads
"""

from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from healthscore.auth.dependencies import verify_cron_token
from healthscore.config import get_settings
from healthscore.engine.pipeline import run_daily_scoring
from healthscore.models.enums import AlertStatus, Pillar
from healthscore.models.scores import (
    MAX_TOTAL_SCORE,
    PILLAR_MAX_SCORES,
    PILLAR_NAMES,
    ScoreSnapshot,
)
from healthscore.storage import get_storage
from healthscore.utils.logging import get_logger, scoring_run_context

logger = get_logger(__name__)
router = APIRouter()


class RunScoringRequest(BaseModel):
    """Trigger a daily run. Defaults to yesterday (UTC)."""

    score_date: Optional[date] = Field(default=None, description="Date to score")
    run_alerts: Optional[bool] = Field(
        default=None, description="Override ALERTS_ENABLED for this run"
    )


def _snapshot_payload(snapshot: ScoreSnapshot) -> dict:
    data = snapshot.model_dump(mode="json")
    data["max_score"] = MAX_TOTAL_SCORE
    data["pillars"] = [
        {
            "pillar": pillar.value,
            "name": PILLAR_NAMES[pillar],
            "score": result.score,
            "max_score": PILLAR_MAX_SCORES[pillar],
        }
        for pillar, result in snapshot.breakdown.pillars().items()
    ]
    return data


@router.post("/run", dependencies=[Depends(verify_cron_token)])
async def run_scoring(request: Optional[RunScoringRequest] = None):
    """
    Run the daily pipeline: score, actions, then alerts.

    Protected by the X-CRON-TOKEN header.
    """
    request = request or RunScoringRequest()
    score_date = request.score_date or (datetime.utcnow().date() - timedelta(days=1))

    logger.info("score_run_requested", score_date=score_date.isoformat())

    # ConfigurationError and StorageError map to 500 via the app's handlers
    with scoring_run_context(score_date, trigger="api"):
        result = run_daily_scoring(
            get_storage(), get_settings(), score_date, run_alerts=request.run_alerts
        )

    return {
        "success": True,
        "data": {
            "score_date": score_date.isoformat(),
            "total_score": result.total_score,
            "breakdown": result.snapshot.breakdown.model_dump(mode="json"),
            "actions": [action.model_dump(mode="json") for action in result.actions],
            "alerts_evaluated": result.alerts_evaluated,
            "alerts": [alert.model_dump(mode="json") for alert in result.alerts],
        },
    }


@router.get("/latest")
async def get_latest_score():
    """Get the most recent daily score snapshot."""
    snapshot = get_storage().read_latest_score_snapshot()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No scores have been calculated yet")

    return {"success": True, "data": _snapshot_payload(snapshot)}


@router.get("/history")
async def get_score_history(
    days: int = Query(default=30, ge=1, le=365),
    end_date: Optional[date] = None,
):
    """
    Get daily total and pillar scores for a trailing range, oldest first.
    """
    end = end_date or datetime.utcnow().date()
    start = end - timedelta(days=days - 1)

    snapshots = get_storage().read_score_snapshots(start_date=start, end_date=end)

    logger.info(
        "score_history_read",
        start=start.isoformat(),
        end=end.isoformat(),
        count=len(snapshots),
    )

    return {
        "success": True,
        "data": [
            {
                "score_date": s.score_date.isoformat(),
                "total_score": s.total_score,
                "p1_score": s.p1_score,
                "p2_score": s.p2_score,
                "p3_score": s.p3_score,
                "p4_score": s.p4_score,
                "p5_score": s.p5_score,
            }
            for s in snapshots
        ],
        "range": {"start_date": start.isoformat(), "end_date": end.isoformat()},
    }


@router.get("/alerts")
async def list_alerts(
    status: Optional[AlertStatus] = None,
    limit: int = Query(default=100, ge=1, le=500),
):
    """List score and metric alerts, newest first."""
    alerts = get_storage().read_alerts(status=status, limit=limit)
    return {
        "success": True,
        "data": [alert.model_dump(mode="json") for alert in alerts],
    }


@router.get("/{score_date}")
async def get_score(score_date: date):
    """Get the snapshot for one date."""
    snapshot = get_storage().read_score_snapshot(score_date)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No score for {score_date.isoformat()}")

    return {"success": True, "data": _snapshot_payload(snapshot)}


@router.get("/{score_date}/actions")
async def get_actions(
    score_date: date,
    pillar: Optional[Pillar] = None,
    latest_run_only: bool = True,
):
    """
    Get remediation actions for a date, highest impact first.

    By default only rows written by the most recent run are returned.
    """
    actions = get_storage().read_actions(
        score_date, pillar=pillar, latest_run_only=latest_run_only
    )
    return {
        "success": True,
        "data": [action.model_dump(mode="json") for action in actions],
    }
