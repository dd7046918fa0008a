"""Featured pick routes."""
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from oddsedge.api.dependencies import get_repository
from oddsedge.core.auth import require_cron_secret
from oddsedge.core.config import settings
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.analysis.featured_picks import FeaturedPickSelector
from oddsedge.utils.timezone import utc_today

router = APIRouter(prefix="/featured-picks", tags=["featured-picks"])


@router.get("")
async def list_featured_picks(
    pick_date: Optional[date] = Query(None, description="Defaults to today (UTC)"),
    repository: OddsRepository = Depends(get_repository),
) -> Dict:
    picks = repository.list_featured_picks(pick_date or utc_today())
    return {
        "pick_date": (pick_date or utc_today()).isoformat(),
        "count": len(picks),
        "picks": [
            {
                "rank": p.rank,
                "sport": p.sport,
                "game_id": p.game_id,
                "game_info": p.game_info,
                "selection_id": p.selection_id,
                "pick_type": p.pick_type,
                "selection": p.selection,
                "line": p.line,
                "odds": p.odds,
                "sportsbook": p.sportsbook,
                "recommendation_score": p.recommendation_score,
                "hit_probability": p.hit_probability,
                "ev_percentage": p.ev_percentage,
                "has_edge": p.has_edge,
                "reasoning": p.reasoning,
                "expires_at": p.expires_at.isoformat() if p.expires_at else None,
            }
            for p in picks
        ],
    }


@router.post("/generate")
async def generate_featured_picks(
    _: str = Depends(require_cron_secret),
    repository: OddsRepository = Depends(get_repository),
) -> Dict:
    """Regenerate today's featured set from stored quotes (full replace)."""
    return FeaturedPickSelector.from_settings(repository, settings).generate()
