"""
Featured pick selection.

Every side of every upcoming game and player prop, at every line a book
quotes (alternates included), is priced at each book quoting it; the
best-scoring book per selection becomes a candidate.
Candidates are ranked by

    (-recommendation_score, line_distance, selection_id)

and the top N replace the day's featured set.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from oddsedge.core.logging import get_logger
from oddsedge.core.metrics import featured_picks_generated
from oddsedge.models import Game
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.analysis.consensus import aggregate_game_odds
from oddsedge.services.analysis.edge_engine import AnalysisResult, EdgeEngine, Selection, SideQuote
from oddsedge.services.analysis.line_adjustment import adjustment_rate
from oddsedge.services.analysis.selections import (
    GAME_SIDES,
    PROP_LINE_DIRECTION,
    PROP_SIDES,
    alternate_side_quotes,
    game_selection_id,
    game_selection_label,
    game_side_quotes,
    group_props,
    prop_selection_id,
    prop_selection_label,
    prop_side_quotes,
)
from oddsedge.utils.timezone import utcnow

logger = get_logger(__name__)


@dataclass
class Candidate:
    game: Game
    pick_type: str
    analysis: AnalysisResult

    @property
    def sort_key(self) -> Tuple[float, float, str]:
        return (-self.analysis.recommendation_score, self.analysis.line_distance, self.analysis.selection_id)


def rank_candidates(candidates: Sequence[Candidate]) -> List[Candidate]:
    """Score descending, then closer to consensus line, then selection id."""
    return sorted(candidates, key=lambda c: c.sort_key)


class FeaturedPickSelector:
    """Builds, ranks and persists the day's featured picks."""

    def __init__(
        self,
        repository: OddsRepository,
        engine: EdgeEngine,
        limit: int = 10,
        min_score: float = 40.0,
        max_candidates: int = 200,
        lookback_hours: int = 4,
        ttl_hours: int = 24,
    ):
        self.repository = repository
        self.engine = engine
        self.limit = limit
        self.min_score = min_score
        self.max_candidates = max_candidates
        self.lookback_hours = lookback_hours
        self.ttl_hours = ttl_hours

    @classmethod
    def from_settings(cls, repository: OddsRepository, settings) -> "FeaturedPickSelector":
        return cls(
            repository,
            EdgeEngine.from_settings(settings),
            limit=settings.FEATURED_PICKS_LIMIT,
            min_score=settings.FEATURED_MIN_SCORE,
            max_candidates=settings.FEATURED_MAX_CANDIDATES,
            lookback_hours=settings.FEATURED_LOOKBACK_HOURS,
            ttl_hours=settings.FEATURED_PICK_TTL_HOURS,
        )

    def _best_for_selection(
        self,
        selection_id: str,
        label: str,
        market: str,
        line: Optional[float],
        quotes: List[SideQuote],
        direction: int,
        rate: Optional[float],
    ) -> Optional[AnalysisResult]:
        best = None
        for book_key in sorted({q.book_key for q in quotes if q.line == line}):
            result = self.engine.analyze(Selection(selection_id, label, market, book_key, line, direction, rate), quotes)
            if not isinstance(result, AnalysisResult):
                continue
            key = (-result.recommendation_score, result.line_distance, result.target_book)
            if best is None or key < (-best.recommendation_score, best.line_distance, best.target_book):
                best = result
        return best

    def build_candidates(self, games: Sequence[Game], quotes: Sequence[Any], props: Sequence[Any]) -> List[Candidate]:
        """Analyze every selection of ``games``; selections without analysis are dropped."""
        by_id = {g.id: g for g in games}
        candidates: List[Candidate] = []
        alternates: Dict[str, List[Any]] = {}
        for q in quotes:
            if q.is_alternate:
                alternates.setdefault(q.game_id, []).append(q)

        for game_id, books in aggregate_game_odds(quotes).items():
            game = by_id.get(game_id)
            if game is None:
                continue
            for side in GAME_SIDES:
                side_quotes = game_side_quotes(books, side) + alternate_side_quotes(alternates.get(game_id, []), side)
                rate = adjustment_rate(game.sport, side.market)
                for line in sorted({q.line for q in side_quotes}, key=lambda v: (v is None, v)):
                    label = game_selection_label(side, line, game.home_team, game.away_team)
                    result = self._best_for_selection(
                        game_selection_id(game.id, side.market, side.side, line), label, side.market, line, side_quotes,
                        side.direction, rate,
                    )
                    if result is not None:
                        candidates.append(Candidate(game, side.market, result))

        for (game_id, player, prop_type), rows in group_props(props).items():
            game = by_id.get(game_id)
            if game is None:
                continue
            rate = adjustment_rate(game.sport, prop_type)
            for side in PROP_SIDES:
                side_quotes = prop_side_quotes(rows, side)
                for line in sorted({q.line for q in side_quotes}):
                    result = self._best_for_selection(
                        prop_selection_id(game.id, player, prop_type, side, line),
                        prop_selection_label(player, prop_type, side, line),
                        "prop",
                        line,
                        side_quotes,
                        PROP_LINE_DIRECTION[side],
                        rate,
                    )
                    if result is not None:
                        candidates.append(Candidate(game, prop_type, result))

        return candidates

    def select(self, now: Optional[datetime] = None) -> List[Candidate]:
        """Top-N qualifying candidates for games starting after ``now - lookback``."""
        now = now or utcnow()
        games = self.repository.list_upcoming_games(
            now - timedelta(hours=self.lookback_hours), limit=self.max_candidates
        )
        game_ids = [g.id for g in games]
        candidates = self.build_candidates(
            games,
            self.repository.list_odds_quotes(game_ids, include_alternates=True),
            self.repository.list_player_props(game_ids, include_alternates=True),
        )
        qualified = [c for c in candidates if c.analysis.recommendation_score >= self.min_score]
        logger.info(f"Featured picks: {len(qualified)}/{len(candidates)} candidates qualify from {len(games)} games")
        return rank_candidates(qualified)[: self.limit]

    def generate(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Replace today's featured set; returns a summary for the run snapshot."""
        now = now or utcnow()
        picks = self.select(now)
        rows = self.repository.replace_featured_picks(
            now.date(), [self._to_record(c, now) for c in picks], now
        )
        featured_picks_generated.set(len(rows))
        return {
            "success": True,
            "generated": len(rows),
            "with_edge": sum(1 for c in picks if c.analysis.has_edge),
        }

    def _to_record(self, candidate: Candidate, now: datetime) -> Dict[str, Any]:
        a = candidate.analysis
        game = candidate.game
        expires_at = game.game_date if game.game_date and game.game_date > now else now + timedelta(hours=self.ttl_hours)
        return {
            "sport": game.sport,
            "game_id": game.id,
            "game_info": game.matchup,
            "selection_id": a.selection_id,
            "pick_type": candidate.pick_type,
            "selection": a.selection,
            "line": a.line,
            "odds": a.target_price,
            "sportsbook": a.target_sportsbook,
            "recommendation_score": a.recommendation_score,
            "hit_probability": round(a.hit_probability, 4),
            "ev_percentage": round(a.ev_percentage, 2),
            "has_edge": a.has_edge,
            "reasoning": a.reasoning,
            "expires_at": expires_at,
        }
