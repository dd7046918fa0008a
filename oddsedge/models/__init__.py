"""Database models for the odds edge service."""
from oddsedge.models.odds import (
    Base,
    Game,
    OddsQuote,
    PlayerProp,
    CronRun,
    FeaturedPick,
)

__all__ = [
    "Base",
    "Game",
    "OddsQuote",
    "PlayerProp",
    "CronRun",
    "FeaturedPick",
]
