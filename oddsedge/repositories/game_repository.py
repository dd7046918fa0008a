"""Game repository: idempotent game upserts and upcoming-game reads."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from oddsedge.models import Game
from oddsedge.repositories.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    """Data access for games, keyed by upstream event id."""

    def __init__(self, db: Session):
        super().__init__(Game, db)

    def find_by_external_id(self, external_id: str) -> Optional[Game]:
        return self.find_one_by(external_id=external_id)

    def upsert(self, record: Dict[str, Any]) -> Game:
        """Create or refresh a game; ``record['external_id']`` is the conflict target."""
        values = {k: v for k, v in record.items() if k != "external_id"}
        return self.upsert_by("external_id", record["external_id"], values)

    def list_upcoming(
        self,
        since: datetime,
        sport: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Game]:
        """Games starting at or after ``since``, soonest first."""
        query = self.db.query(Game).filter(Game.game_date >= since)
        if sport:
            query = query.filter(Game.sport == sport)
        query = query.order_by(Game.game_date, Game.id)
        if limit is not None:
            query = query.limit(limit)
        return query.all()
