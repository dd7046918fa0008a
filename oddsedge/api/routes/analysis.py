"""On-demand player prop market analysis."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from oddsedge.api.dependencies import get_edge_engine, get_repository
from oddsedge.core.config import settings
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.analysis.edge_engine import AnalysisResult, EdgeEngine, Selection
from oddsedge.services.analysis.line_adjustment import adjustment_rate
from oddsedge.services.analysis.market_position import analyze_prop_market
from oddsedge.services.analysis.selections import (
    PROP_LINE_DIRECTION,
    PROP_SIDES,
    book_for,
    prop_selection_id,
    prop_selection_label,
    prop_side_quotes,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.get("/prop-market")
async def analyze_prop(
    game_id: Optional[str] = Query(None),
    player_name: Optional[str] = Query(None),
    prop_type: Optional[str] = Query(None),
    sportsbook: Optional[str] = Query(None, description="Book key or display name"),
    line: Optional[float] = Query(None),
    side: Optional[str] = Query(None, pattern="^(over|under)$"),
    repository: OddsRepository = Depends(get_repository),
    engine: EdgeEngine = Depends(get_edge_engine),
):
    """
    Where one book stands in a player prop market, with no-vig edge metrics.

    Returns 404 with ``available_books`` when the book has no quote or the
    market is too thin to analyze, including when no requested side can be
    priced against a reference consensus.
    """
    if not (game_id and player_name and prop_type and sportsbook):
        return JSONResponse(
            status_code=400,
            content={"error": "Missing required params: game_id, player_name, prop_type, sportsbook"},
        )

    market_rows = repository.list_prop_market(game_id, player_name, prop_type, line=line)
    rows = [r for r in market_rows if not r.is_alternate]
    if not rows:
        return JSONResponse(status_code=404, content={"error": "No props found for this player/game/type"})

    available_books = sorted({r.sportsbook for r in rows})
    target = book_for(rows, sportsbook)
    market = analyze_prop_market(sportsbook, rows, settings.SHARP_BOOK_KEYS)
    if target is None or market is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": f"Unable to analyze market for {sportsbook}. "
                         f"Book may not have this prop or there is insufficient market data.",
                "available_books": available_books,
            },
        )

    game = repository.get_game(game_id)
    rate = adjustment_rate(game.sport if game else None, prop_type)

    edge = {}
    analyzed = False
    for prop_side in ([side] if side else PROP_SIDES):
        result = engine.analyze(
            Selection(
                prop_selection_id(game_id, player_name, prop_type, prop_side, target.line),
                prop_selection_label(player_name, prop_type, prop_side, target.line),
                "prop",
                target.book_key,
                target.line,
                PROP_LINE_DIRECTION[prop_side],
                rate,
            ),
            prop_side_quotes(market_rows, prop_side),
        )
        analyzed = analyzed or isinstance(result, AnalysisResult)
        edge[prop_side] = result.to_dict()

    if not analyzed:
        reasons = "; ".join(e["error"] for e in edge.values())
        return JSONResponse(
            status_code=404,
            content={
                "error": f"Insufficient market data for {sportsbook}: {reasons}",
                "available_books": available_books,
            },
        )

    return {
        "player_name": player_name,
        "prop_type": prop_type,
        "analysis": market,
        "edge": edge,
    }
