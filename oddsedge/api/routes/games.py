"""Upcoming games with merged per-book odds."""
from datetime import timedelta
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from oddsedge.api.dependencies import get_repository
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.analysis.consensus import aggregate_game_odds
from oddsedge.services.pipeline.sports import SPORT_KEYS
from oddsedge.utils.timezone import utcnow

router = APIRouter(prefix="/games", tags=["games"])


@router.get("")
async def list_games(
    sport: Optional[str] = Query(None, description="NFL, NBA, MLB or NCAAF"),
    hours_back: int = Query(4, ge=0, le=48, description="Include games that started this many hours ago"),
    limit: int = Query(100, ge=1, le=500),
    repository: OddsRepository = Depends(get_repository),
) -> Dict:
    """Upcoming games, each with one merged odds record per book (best display order first)."""
    if sport and sport.upper() not in SPORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Invalid sport. Expected one of {', '.join(SPORT_KEYS)}")

    games = repository.list_upcoming_games(
        utcnow() - timedelta(hours=hours_back),
        sport=sport.upper() if sport else None,
        limit=limit,
    )
    odds_by_game = aggregate_game_odds(repository.list_odds_quotes([g.id for g in games]))

    return {
        "count": len(games),
        "games": [
            {
                "id": g.id,
                "sport": g.sport,
                "home_team": g.home_team,
                "away_team": g.away_team,
                "game_date": g.game_date.isoformat() if g.game_date else None,
                "status": g.status,
                "odds": [book.to_dict() for book in odds_by_game.get(g.id, [])],
            }
            for g in games
        ],
    }
