"""Shared FastAPI dependencies."""
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.orm import Session

from oddsedge.core.config import settings
from oddsedge.core.database import get_db
from oddsedge.repositories.odds_repository import OddsRepository
from oddsedge.services.analysis.edge_engine import EdgeEngine
from oddsedge.services.core.odds_api_service import OddsApiService


async def get_odds_service() -> AsyncGenerator[OddsApiService, None]:
    """Odds feed client scoped to one request."""
    service = OddsApiService.from_settings(settings)
    try:
        yield service
    finally:
        await service.close()


def get_repository(db: Session = Depends(get_db)) -> OddsRepository:
    return OddsRepository(db)


def get_edge_engine() -> EdgeEngine:
    return EdgeEngine.from_settings(settings)
