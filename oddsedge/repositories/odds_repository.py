"""
Repository adapter used by the collection pipeline and analysis services.

Bundles the per-entity repositories behind the operations the pipeline
needs, all sharing one session.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from oddsedge.models import CronRun, FeaturedPick, Game, OddsQuote, PlayerProp
from oddsedge.repositories.featured_pick_repository import FeaturedPickRepository
from oddsedge.repositories.game_repository import GameRepository
from oddsedge.repositories.market_repository import OddsQuoteRepository, PlayerPropRepository
from oddsedge.repositories.run_repository import CronRunRepository

# Conflict fields, in key order
GAME_CONFLICT_FIELDS = ("external_id",)
ODDS_QUOTE_CONFLICT_FIELDS = ("game_id", "book_key", "market", "is_alternate")
ALT_ODDS_QUOTE_CONFLICT_FIELDS = ("game_id", "book_key", "market", "is_alternate", "line")
PLAYER_PROP_CONFLICT_FIELDS = ("game_id", "player_name", "prop_type", "sportsbook", "line", "is_alternate")


class OddsRepository:
    """Sole writer of games, quotes, props, runs and featured picks."""

    def __init__(self, db: Session):
        self.db = db
        self.games = GameRepository(db)
        self.quotes = OddsQuoteRepository(db)
        self.props = PlayerPropRepository(db)
        self.runs = CronRunRepository(db)
        self.featured = FeaturedPickRepository(db)

    # Collection writes

    def upsert_game(self, record: Dict[str, Any]) -> Game:
        return self.games.upsert(record)

    def upsert_odds_quote(
        self,
        record: Dict[str, Any],
        conflict_fields: Sequence[str] = ODDS_QUOTE_CONFLICT_FIELDS,
    ) -> OddsQuote:
        return self.quotes.upsert(record, conflict_fields)

    def upsert_player_prop(
        self,
        record: Dict[str, Any],
        conflict_fields: Sequence[str] = PLAYER_PROP_CONFLICT_FIELDS,
    ) -> PlayerProp:
        return self.props.upsert(record, conflict_fields)

    # Run ledger

    def count_completed_runs(self, run_date: date) -> int:
        return self.runs.count_completed(run_date)

    def create_run(self, run_date: date) -> CronRun:
        return self.runs.create(run_date)

    def finish_run(
        self,
        run_id: str,
        status: str,
        results: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> bool:
        return self.runs.finish(run_id, status, results=results, error=error)

    def latest_run(self) -> Optional[CronRun]:
        return self.runs.latest()

    # Reads for analysis

    def list_upcoming_games(
        self,
        since: datetime,
        sport: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Game]:
        return self.games.list_upcoming(since, sport=sport, limit=limit)

    def get_game(self, game_id: str) -> Optional[Game]:
        return self.games.find_by_id(game_id)

    def list_odds_quotes(self, game_ids: Sequence[str], include_alternates: bool = False) -> List[OddsQuote]:
        return self.quotes.list_for_games(game_ids, include_alternates=include_alternates)

    def list_player_props(self, game_ids: Sequence[str], include_alternates: bool = False) -> List[PlayerProp]:
        return self.props.list_for_games(game_ids, include_alternates=include_alternates)

    def list_prop_market(
        self,
        game_id: str,
        player_name: str,
        prop_type: str,
        line: Optional[float] = None,
    ) -> List[PlayerProp]:
        return self.props.list_market(game_id, player_name, prop_type, line=line)

    # Featured picks

    def replace_featured_picks(
        self,
        pick_date: date,
        picks: Sequence[Dict[str, Any]],
        now: datetime,
    ) -> List[FeaturedPick]:
        return self.featured.replace_for_day(pick_date, picks, now)

    def list_featured_picks(self, pick_date: date) -> List[FeaturedPick]:
        return self.featured.list_for_day(pick_date)
