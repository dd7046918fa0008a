"""
Run ledger: daily gating and exactly-once terminal state for collection runs.

A cycle first counts today's completed runs; at the limit it returns a
"skipped" outcome without recording anything. Otherwise it records a
'running' run, executes the orchestrated pass and closes the run as
'completed' or 'failed'. The close happens in a ``finally`` path, so a
cancelled or otherwise interrupted pass still ends as 'failed'.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from oddsedge.core.logging import clear_run_id, get_logger, set_run_id
from oddsedge.core.metrics import record_run
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.repositories.run_repository import RUN_COMPLETED, RUN_FAILED
from oddsedge.utils.timezone import utc_today, utcnow

logger = get_logger(__name__)

RUN_SKIPPED = "skipped"

# Serializes cycles within one process
_cycle_lock = asyncio.Lock()


@dataclass
class RunOutcome:
    status: str
    run_id: Optional[str] = None
    results: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    completed_runs_today: int = 0
    timestamp: str = ""

    @property
    def skipped(self) -> bool:
        return self.status == RUN_SKIPPED

    @property
    def failed(self) -> bool:
        return self.status == RUN_FAILED

    def to_response(self) -> Dict[str, Any]:
        """Body returned by the trigger endpoint."""
        if self.skipped:
            return {
                "message": f"Already completed {self.completed_runs_today} runs today",
                "completedRunsToday": self.completed_runs_today,
                "skipped": True,
            }
        if self.failed:
            return {"success": False, "error": self.error, "run_id": self.run_id, "timestamp": self.timestamp}
        return {"success": True, "run_id": self.run_id, "timestamp": self.timestamp, "results": self.results}


class RunLedger:
    """Gate and record one collection cycle."""

    def __init__(
        self,
        repository: OddsRepository,
        max_completed_runs: int = 2,
        lock: Optional[asyncio.Lock] = None,
    ):
        self.repository = repository
        self.max_completed_runs = max_completed_runs
        self._lock = lock or _cycle_lock

    async def execute(self, orchestrate: Callable[[], Awaitable[Dict[str, Any]]]) -> RunOutcome:
        """
        Run ``orchestrate`` under the daily gate.

        Returns:
            RunOutcome with status 'skipped', 'completed' or 'failed'
        """
        async with self._lock:
            today = utc_today()
            completed = self.repository.count_completed_runs(today)
            if completed >= self.max_completed_runs:
                logger.info(f"Skipping collection run: {completed} runs already completed on {today}")
                record_run(RUN_SKIPPED)
                return RunOutcome(
                    status=RUN_SKIPPED,
                    completed_runs_today=completed,
                    timestamp=utcnow().isoformat(),
                )

            run = self.repository.create_run(today)
            token = set_run_id(run.id)
            closed = False
            logger.info(f"Collection run {run.id} started ({completed} completed today)")

            try:
                results = await orchestrate()
                closed = True
                self.repository.finish_run(run.id, RUN_COMPLETED, results=results)
                record_run(RUN_COMPLETED)
                logger.info(f"Collection run {run.id} completed with {len(results.get('errors', []))} errors")
                return RunOutcome(
                    status=RUN_COMPLETED,
                    run_id=run.id,
                    results=results,
                    completed_runs_today=completed + 1,
                    timestamp=utcnow().isoformat(),
                )
            except Exception as e:
                closed = True
                message = str(e) or type(e).__name__
                logger.exception(f"Collection run {run.id} failed: {message}")
                self.repository.finish_run(run.id, RUN_FAILED, error=message)
                record_run(RUN_FAILED)
                return RunOutcome(
                    status=RUN_FAILED,
                    run_id=run.id,
                    error=message,
                    completed_runs_today=completed,
                    timestamp=utcnow().isoformat(),
                )
            finally:
                if not closed:
                    logger.error(f"Collection run {run.id} interrupted")
                    self.repository.finish_run(run.id, RUN_FAILED, error="run interrupted")
                    record_run(RUN_FAILED)
                clear_run_id(token)
