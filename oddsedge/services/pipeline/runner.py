"""
Wiring for a full collection cycle, shared by the HTTP trigger and the
scheduler.
"""
from typing import Optional

from sqlalchemy.orm import Session

from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.analysis.featured_picks import FeaturedPickSelector
from oddsedge.services.core.odds_api_service import OddsApiService
from oddsedge.services.pipeline.collector import CollectionOptions, CollectionWindow, SportCollector
from oddsedge.services.pipeline.orchestrator import PipelineOrchestrator
from oddsedge.services.pipeline.run_ledger import RunLedger, RunOutcome


def build_collector(sport: str, odds_service: OddsApiService, repository: OddsRepository, settings) -> SportCollector:
    return SportCollector(
        sport,
        odds_service,
        repository,
        default_book_keys=settings.DEFAULT_BOOK_KEYS,
        reference_book_keys=settings.SHARP_BOOK_KEYS,
        concurrency=settings.PROPS_CONCURRENCY,
        event_timeout=settings.EVENT_FETCH_TIMEOUT_SECONDS,
    )


def build_orchestrator(
    db: Session,
    odds_service: OddsApiService,
    settings,
    options: Optional[CollectionOptions] = None,
) -> PipelineOrchestrator:
    repository = OddsRepository(db)
    selector = FeaturedPickSelector.from_settings(repository, settings)
    return PipelineOrchestrator(
        collector_factory=lambda sport: build_collector(sport, odds_service, repository, settings),
        sports=settings.PIPELINE_SPORTS,
        featured_generator=selector.generate,
        run_timeout=settings.RUN_TIMEOUT_SECONDS,
        options=options or CollectionOptions(window=CollectionWindow(hours_ahead=settings.COLLECT_HOURS_AHEAD)),
    )


async def run_collection_cycle(db: Session, odds_service: OddsApiService, settings) -> RunOutcome:
    """Gate, run and record one full collection pass."""
    orchestrator = build_orchestrator(db, odds_service, settings)
    ledger = RunLedger(OddsRepository(db), max_completed_runs=settings.MAX_COMPLETED_RUNS_PER_DAY)
    return await ledger.execute(orchestrator.run)
