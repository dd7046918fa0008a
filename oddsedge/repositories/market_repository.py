"""Repositories for game-line quotes and player props."""
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from oddsedge.models import OddsQuote, PlayerProp
from oddsedge.repositories.base import BaseRepository
from oddsedge.services.pipeline.idempotency import key_for


class OddsQuoteRepository(BaseRepository[OddsQuote]):
    """Game-line quotes (spread, total, moneyline; main and alternate)."""

    def __init__(self, db: Session):
        super().__init__(OddsQuote, db)

    def upsert(self, record: Dict[str, Any], conflict_fields: Sequence[str]) -> OddsQuote:
        return self.upsert_by("dedupe_key", key_for(record, conflict_fields), record)

    def list_for_games(self, game_ids: Sequence[str], include_alternates: bool = False) -> List[OddsQuote]:
        """Quotes for the given games in insertion order."""
        if not game_ids:
            return []
        query = self.db.query(OddsQuote).filter(OddsQuote.game_id.in_(list(game_ids)))
        if not include_alternates:
            query = query.filter(OddsQuote.is_alternate.is_(False))
        return query.order_by(OddsQuote.created_at, OddsQuote.id).all()


class PlayerPropRepository(BaseRepository[PlayerProp]):
    """Player prop quotes."""

    def __init__(self, db: Session):
        super().__init__(PlayerProp, db)

    def upsert(self, record: Dict[str, Any], conflict_fields: Sequence[str]) -> PlayerProp:
        return self.upsert_by("dedupe_key", key_for(record, conflict_fields), record)

    def list_for_games(self, game_ids: Sequence[str], include_alternates: bool = False) -> List[PlayerProp]:
        if not game_ids:
            return []
        query = self.db.query(PlayerProp).filter(PlayerProp.game_id.in_(list(game_ids)))
        if not include_alternates:
            query = query.filter(PlayerProp.is_alternate.is_(False))
        return query.order_by(PlayerProp.created_at, PlayerProp.id).all()

    def list_market(
        self,
        game_id: str,
        player_name: str,
        prop_type: str,
        line: Optional[float] = None,
    ) -> List[PlayerProp]:
        """Every book's quote for one player market, optionally at one line."""
        query = self.db.query(PlayerProp).filter(
            PlayerProp.game_id == game_id,
            PlayerProp.player_name == player_name,
            PlayerProp.prop_type == prop_type,
        )
        if line is not None:
            query = query.filter(PlayerProp.line == line)
        return query.order_by(PlayerProp.sportsbook, PlayerProp.line).all()
