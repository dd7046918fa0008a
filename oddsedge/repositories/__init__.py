"""Data access layer."""
from oddsedge.repositories.odds_repository import OddsRepository

__all__ = ["OddsRepository"]
