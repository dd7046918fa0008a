"""Featured pick persistence: whole-day replacement and reads."""
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oddsedge.core.errors import PersistenceError
from oddsedge.models import FeaturedPick
from oddsedge.repositories.base import BaseRepository


class FeaturedPickRepository(BaseRepository[FeaturedPick]):

    def __init__(self, db: Session):
        super().__init__(FeaturedPick, db)

    def replace_for_day(
        self,
        pick_date: date,
        picks: Sequence[Dict[str, Any]],
        now: datetime,
    ) -> List[FeaturedPick]:
        """
        Replace the day's featured set in a single transaction.

        Expired picks from any day are dropped at the same time. Picks are
        ranked in the order given, starting at 1.
        """
        try:
            self.db.query(FeaturedPick).filter(
                (FeaturedPick.pick_date == pick_date) | (FeaturedPick.expires_at < now)
            ).delete(synchronize_session=False)

            rows = []
            for rank, pick in enumerate(picks, start=1):
                row = FeaturedPick(id=str(uuid.uuid4()), pick_date=pick_date, rank=rank, **pick)
                self.db.add(row)
                rows.append(row)

            self.db.commit()
            return rows
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not replace featured picks for {pick_date}: {e}") from e

    def list_for_day(self, pick_date: date) -> List[FeaturedPick]:
        return (
            self.db.query(FeaturedPick)
            .filter(FeaturedPick.pick_date == pick_date)
            .order_by(FeaturedPick.rank)
            .all()
        )
