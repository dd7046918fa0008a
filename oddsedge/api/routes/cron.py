"""Collection trigger routes.

Provides endpoints for:
- The scheduled collection cycle (gated to N completed runs per day)
- The status of the most recent run
- A manual single-sport collection
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from oddsedge.api.dependencies import get_odds_service, get_repository
from oddsedge.core.auth import require_cron_secret
from oddsedge.core.config import settings
from oddsedge.core.database import get_db
from oddsedge.core.errors import UnknownSportError, UpstreamUnavailableError
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.core.odds_api_service import OddsApiService
from oddsedge.services.pipeline.collector import CollectionOptions, CollectionWindow
from oddsedge.services.pipeline.runner import build_collector, run_collection_cycle
from oddsedge.services.pipeline.sports import SPORT_KEYS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["collection"])


class CollectRequest(BaseModel):
    sport: str
    skip_alternates: bool = False
    skip_props: bool = False
    bookmaker_keys: Optional[List[str]] = None
    hours_ahead: Optional[float] = Field(None, gt=0)
    start_hours_ahead: float = Field(0.0, ge=0)
    window_hours: Optional[float] = Field(None, gt=0)


@router.api_route("/cron/run", methods=["GET", "POST"])
async def run_cron(
    _: str = Depends(require_cron_secret),
    db: Session = Depends(get_db),
    odds_service: OddsApiService = Depends(get_odds_service),
):
    """
    Run one gated collection cycle.

    Returns 200 with the run results, or the gating body when today's
    completed-run limit is reached. Returns 500 when the run failed; the
    run is already recorded as failed in that case.
    """
    outcome = await run_collection_cycle(db, odds_service, settings)
    if outcome.failed:
        return JSONResponse(status_code=500, content=outcome.to_response())
    return outcome.to_response()


@router.get("/cron/status")
async def get_cron_status(
    _: str = Depends(require_cron_secret),
    repository: OddsRepository = Depends(get_repository),
) -> Dict:
    """Most recent collection run."""
    run = repository.latest_run()
    if run is None:
        return {"run": None}
    return {
        "run": {
            "id": run.id,
            "run_date": run.run_date.isoformat(),
            "status": run.status,
            "started_at": run.started_at.isoformat() if run.started_at else None,
            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
            "error": run.error,
            "results": run.results,
        },
        "completed_runs_today": repository.count_completed_runs(run.run_date),
    }


@router.post("/collect")
async def collect_sport(
    request: CollectRequest,
    _: str = Depends(require_cron_secret),
    repository: OddsRepository = Depends(get_repository),
    odds_service: OddsApiService = Depends(get_odds_service),
) -> Dict:
    """Collect one sport outside the scheduled cycle (not gated, not recorded as a run)."""
    try:
        collector = build_collector(request.sport, odds_service, repository, settings)
    except UnknownSportError:
        raise HTTPException(status_code=400, detail=f"Invalid sport. Expected one of {', '.join(SPORT_KEYS)}")

    options = CollectionOptions(
        window=CollectionWindow(
            start_hours_ahead=request.start_hours_ahead,
            window_hours=request.window_hours,
            hours_ahead=request.hours_ahead,
        ),
        book_keys=request.bookmaker_keys,
        skip_props=request.skip_props,
        skip_alternates=request.skip_alternates,
    )

    try:
        details = await collector.collect(options)
    except UpstreamUnavailableError as e:
        logger.error(f"Collection for {request.sport} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "success": True,
        "message": f"Created {details['games']} games, {details['odds']} odds entries, {details['props']} player props",
        "details": details,
    }
