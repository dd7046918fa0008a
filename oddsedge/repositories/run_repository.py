"""Collection run ledger persistence."""
import uuid
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oddsedge.core.errors import PersistenceError
from oddsedge.models import CronRun
from oddsedge.repositories.base import BaseRepository
from oddsedge.utils.timezone import utcnow

RUN_RUNNING = "running"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"


class CronRunRepository(BaseRepository[CronRun]):
    """Reads and transitions of collection runs."""

    def __init__(self, db: Session):
        super().__init__(CronRun, db)

    def count_completed(self, run_date: date) -> int:
        return (
            self.db.query(CronRun)
            .filter(CronRun.run_date == run_date, CronRun.status == RUN_COMPLETED)
            .count()
        )

    def create(self, run_date: date) -> CronRun:
        run = CronRun(
            id=str(uuid.uuid4()),
            run_date=run_date,
            status=RUN_RUNNING,
            started_at=utcnow(),
        )
        try:
            self.db.add(run)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not record run start: {e}") from e
        return run

    def finish(
        self,
        run_id: str,
        status: str,
        results: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> bool:
        """
        Move a running run to a terminal status.

        The update is conditional on the run still being 'running', so a run
        can only ever be closed once.

        Returns:
            True if this call performed the transition
        """
        if status not in (RUN_COMPLETED, RUN_FAILED):
            raise ValueError(f"not a terminal run status: {status}")
        try:
            updated = (
                self.db.query(CronRun)
                .filter(CronRun.id == run_id, CronRun.status == RUN_RUNNING)
                .update(
                    {
                        CronRun.status: status,
                        CronRun.completed_at: utcnow(),
                        CronRun.results: results,
                        CronRun.error: error,
                    },
                    synchronize_session="fetch",
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"could not close run {run_id}: {e}") from e
        return updated == 1

    def latest(self) -> Optional[CronRun]:
        return self.db.query(CronRun).order_by(CronRun.started_at.desc()).first()
