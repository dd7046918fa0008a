"""
Per-run instrumentation: step timings, per-sport details and errors.

The snapshot is a plain JSON-serializable dict persisted with the run:

    {
        "NFL": {"games": 12, "odds": 140, ...},
        "NFL_collect_ms": 8123,
        "featuredPicks": {...},
        "errors": ["NBA: Odds feed unavailable"],
    }
"""
import copy
import time
from typing import Any, Dict, Optional, Tuple

from oddsedge.core.logging import get_logger
from oddsedge.core.metrics import observe_stage

logger = get_logger(__name__)


class Instrumentation:
    """Accumulates the results snapshot of one collection run."""

    def __init__(self):
        self._results: Dict[str, Any] = {"errors": []}
        self._started: Dict[Tuple[str, str], float] = {}

    def step_start(self, scope: str, step: str):
        self._started[(scope, step)] = time.monotonic()
        logger.info(f"{scope}: {step} started")

    def step_end(self, scope: str, step: str, data: Optional[Dict[str, Any]] = None) -> int:
        """
        Close a step, record its duration and merge ``data`` into the scope's slot.

        Returns:
            Elapsed milliseconds (0 if the step was never started)
        """
        started = self._started.pop((scope, step), None)
        elapsed = time.monotonic() - started if started is not None else 0.0
        elapsed_ms = int(elapsed * 1000)

        self._results[f"{scope}_{step}_ms"] = elapsed_ms
        if data:
            self._scope(scope).update(data)
        observe_stage(scope, step, elapsed)
        logger.info(f"{scope}: {step} finished in {elapsed_ms}ms")
        return elapsed_ms

    def append_error(self, scope: str, message: str):
        """Record an error both in the run-wide list and in the scope's slot."""
        self._results["errors"].append(f"{scope}: {message}")
        self._scope(scope)["error"] = message
        logger.error(f"{scope}: {message}")

    def record(self, scope: str, data: Dict[str, Any]):
        self._scope(scope).update(data)

    @property
    def errors(self) -> list:
        return list(self._results["errors"])

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._results)

    def _scope(self, scope: str) -> Dict[str, Any]:
        slot = self._results.get(scope)
        if not isinstance(slot, dict):
            slot = {}
            self._results[scope] = slot
        return slot
