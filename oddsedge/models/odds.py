"""
Database models for collected markets, collection runs and featured picks.

Every collected entity carries a ``dedupe_key`` built by
``oddsedge.services.pipeline.idempotency.stable_key`` from its conflict
fields; the unique constraint on that column is what makes repeated
collection passes converge instead of duplicating rows.
"""
from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Date, ForeignKey, Boolean, Text,
    Index, UniqueConstraint, JSON,
)
from sqlalchemy.orm import relationship, declarative_base

from oddsedge.utils.timezone import utcnow

Base = declarative_base()

# Fits the longest prop key: game id, player, prop type, sportsbook and line
KEY_LENGTH = 512


# =============================================================================
# GAMES
# =============================================================================

class Game(Base):
    """A scheduled contest, keyed by the upstream event id."""
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)
    sport = Column(String(10), nullable=False, index=True)  # NFL, NBA, MLB, NCAAF
    external_id = Column(String(100), nullable=False, unique=True, index=True)
    home_team = Column(String(100), nullable=False)
    away_team = Column(String(100), nullable=False)
    game_date = Column(DateTime, nullable=True, index=True)
    status = Column(String(20), nullable=False, default="scheduled")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    odds = relationship("OddsQuote", back_populates="game", cascade="all, delete-orphan")
    props = relationship("PlayerProp", back_populates="game", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_games_sport_date", "sport", "game_date"),
    )

    @property
    def matchup(self) -> str:
        return f"{self.away_team} @ {self.home_team}"


# =============================================================================
# GAME-LINE QUOTES
# =============================================================================

class OddsQuote(Base):
    """
    One book's quote for one market type of a game.

    A (game, book) pair has up to three main-line rows (spread, total,
    moneyline) plus any number of alternate spread/total rows. Only the
    columns of the row's own market type are populated.
    """
    __tablename__ = "odds_quotes"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    book_key = Column(String(50), nullable=False, index=True)
    sportsbook = Column(String(100), nullable=False)
    market = Column(String(20), nullable=False)  # spread, total, moneyline
    is_alternate = Column(Boolean, nullable=False, default=False)
    line = Column(Float, nullable=True)

    spread_home = Column(Float, nullable=True)
    spread_away = Column(Float, nullable=True)
    spread_home_odds = Column(Integer, nullable=True)
    spread_away_odds = Column(Integer, nullable=True)
    total = Column(Float, nullable=True)
    over_odds = Column(Integer, nullable=True)
    under_odds = Column(Integer, nullable=True)
    moneyline_home = Column(Integer, nullable=True)
    moneyline_away = Column(Integer, nullable=True)

    dedupe_key = Column(String(KEY_LENGTH), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    game = relationship("Game", back_populates="odds")

    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_odds_quotes_dedupe_key"),
        Index("ix_odds_quotes_game_book", "game_id", "book_key"),
    )


# =============================================================================
# PLAYER PROPS
# =============================================================================

class PlayerProp(Base):
    """An over/under quote for a player statistic at one book and line."""
    __tablename__ = "player_props"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    player_name = Column(String(150), nullable=False, index=True)
    prop_type = Column(String(100), nullable=False)
    line = Column(Float, nullable=False)
    over_odds = Column(Integer, nullable=True)
    under_odds = Column(Integer, nullable=True)
    book_key = Column(String(50), nullable=False)
    sportsbook = Column(String(100), nullable=False)
    is_alternate = Column(Boolean, nullable=False, default=False)

    dedupe_key = Column(String(KEY_LENGTH), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    game = relationship("Game", back_populates="props")

    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_player_props_dedupe_key"),
        Index("ix_player_props_lookup", "game_id", "player_name", "prop_type"),
    )


# =============================================================================
# RUN LEDGER
# =============================================================================

class CronRun(Base):
    """
    One attempt of the scheduled collection pass.

    Status moves from 'running' to exactly one of 'completed' or 'failed'.
    """
    __tablename__ = "cron_runs"

    id = Column(String(36), primary_key=True)
    run_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="running")
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    results = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_cron_runs_date_status", "run_date", "status"),
    )


# =============================================================================
# FEATURED PICKS
# =============================================================================

class FeaturedPick(Base):
    """A ranked recommendation for a given day; the day's set is replaced wholesale."""
    __tablename__ = "featured_picks"

    id = Column(String(36), primary_key=True)
    pick_date = Column(Date, nullable=False, index=True)
    rank = Column(Integer, nullable=False)
    sport = Column(String(10), nullable=False)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False)
    game_info = Column(String(255), nullable=True)
    selection_id = Column(String(KEY_LENGTH), nullable=False)
    pick_type = Column(String(100), nullable=False)
    selection = Column(String(KEY_LENGTH), nullable=False)
    line = Column(Float, nullable=True)
    odds = Column(Integer, nullable=False)
    sportsbook = Column(String(100), nullable=False)
    recommendation_score = Column(Float, nullable=False)
    hit_probability = Column(Float, nullable=False)
    ev_percentage = Column(Float, nullable=False)
    has_edge = Column(Boolean, nullable=False, default=False)
    reasoning = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("pick_date", "rank", name="uq_featured_picks_date_rank"),
    )
