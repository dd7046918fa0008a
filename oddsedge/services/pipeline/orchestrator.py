"""
Collection orchestrator.

Runs the per-sport collectors one sport at a time under an overall
wall-clock ceiling, then regenerates featured picks as a best-effort
final step. A sport failing (or being cut off by the ceiling) is
recorded in the run snapshot and never stops the remaining steps.
"""
import asyncio
from typing import Any, Callable, Dict, Optional, Sequence

from oddsedge.core.logging import get_logger
from oddsedge.core.metrics import record_sport_outcome
from oddsedge.services.pipeline.collector import CollectionOptions, SportCollector
from oddsedge.services.pipeline.instrumentation import Instrumentation

logger = get_logger(__name__)

FEATURED_SCOPE = "featuredPicks"


class PipelineOrchestrator:
    """
    Sequences sport collection and featured pick generation.

    Args:
        collector_factory: Builds the collector for a sport code
        sports: Sport codes in collection order
        featured_generator: Optional zero-argument callable returning a summary dict
        run_timeout: Overall ceiling in seconds for the collection phase
        options: Collection options shared by every sport
    """

    def __init__(
        self,
        collector_factory: Callable[[str], SportCollector],
        sports: Sequence[str],
        featured_generator: Optional[Callable[[], Dict[str, Any]]] = None,
        run_timeout: Optional[float] = None,
        options: Optional[CollectionOptions] = None,
    ):
        self.collector_factory = collector_factory
        self.sports = list(sports)
        self.featured_generator = featured_generator
        self.run_timeout = run_timeout
        self.options = options or CollectionOptions()

    async def run(self, instrumentation: Optional[Instrumentation] = None) -> Dict[str, Any]:
        """Run every sport then featured picks; returns the results snapshot."""
        instrumentation = instrumentation or Instrumentation()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.run_timeout if self.run_timeout else None

        for sport in self.sports:
            remaining = None
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    instrumentation.append_error(sport, "abandoned: run deadline exceeded")
                    record_sport_outcome(sport, "abandoned")
                    continue

            await self._collect_sport(sport, instrumentation, remaining)

        self._generate_featured(instrumentation)
        return instrumentation.snapshot()

    async def _collect_sport(self, sport: str, instrumentation: Instrumentation, timeout: Optional[float]):
        instrumentation.step_start(sport, "collect")
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            collector = self.collector_factory(sport)
            details = await asyncio.wait_for(collector.collect(self.options), timeout=timeout)
        except asyncio.TimeoutError as e:
            instrumentation.step_end(sport, "collect")
            if timeout is not None and loop.time() - started >= timeout:
                instrumentation.append_error(sport, f"timed out after {timeout:.0f}s (run deadline)")
                record_sport_outcome(sport, "timeout")
            else:
                instrumentation.append_error(sport, str(e) or type(e).__name__)
                record_sport_outcome(sport, "failed")
        except Exception as e:
            instrumentation.step_end(sport, "collect")
            instrumentation.append_error(sport, str(e) or type(e).__name__)
            record_sport_outcome(sport, "failed")
        else:
            instrumentation.step_end(sport, "collect", details)
            record_sport_outcome(sport, "completed")

    def _generate_featured(self, instrumentation: Instrumentation):
        if self.featured_generator is None:
            return
        instrumentation.step_start(FEATURED_SCOPE, "generate")
        try:
            summary = self.featured_generator()
        except Exception as e:
            instrumentation.step_end(FEATURED_SCOPE, "generate")
            instrumentation.append_error(FEATURED_SCOPE, str(e) or type(e).__name__)
            logger.exception("Featured pick generation failed")
        else:
            instrumentation.step_end(FEATURED_SCOPE, "generate", summary)
