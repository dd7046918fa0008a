"""Shared pytest fixtures for odds-edge tests."""
from datetime import timedelta
from typing import Any, Dict, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from oddsedge.utils.timezone import utcnow


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test.

    StaticPool keeps a single connection so the TestClient's worker thread
    sees the same database as the test body.
    """
    from oddsedge.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def repository(db_session: Session):
    from oddsedge.repositories.odds_repository import OddsRepository

    return OddsRepository(db_session)


@pytest.fixture
def client(db_session: Session, monkeypatch) -> Generator:
    """TestClient bound to the test database with a known cron secret."""
    from fastapi.testclient import TestClient

    from oddsedge.core.config import settings
    from oddsedge.core.database import get_db
    from oddsedge.main import app

    monkeypatch.setattr(settings, "CRON_SECRET", "test-secret")

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


AUTH_HEADERS = {"Authorization": "Bearer test-secret"}


# ─────────────────────────────────────────────────────────────
# Raw feed payload builders
# ─────────────────────────────────────────────────────────────

def make_book(
    key: str,
    home: str = "Kansas City Chiefs",
    away: str = "Buffalo Bills",
    spread: Optional[float] = -3.5,
    spread_prices=(-110, -110),
    total: Optional[float] = 47.5,
    total_prices=(-110, -110),
    moneyline=(-170, 145),
) -> Dict[str, Any]:
    """One bookmaker entry of the game-lines endpoint."""
    markets = []
    if moneyline:
        markets.append({
            "key": "h2h",
            "outcomes": [
                {"name": home, "price": moneyline[0]},
                {"name": away, "price": moneyline[1]},
            ],
        })
    if spread is not None:
        markets.append({
            "key": "spreads",
            "outcomes": [
                {"name": home, "price": spread_prices[0], "point": spread},
                {"name": away, "price": spread_prices[1], "point": -spread},
            ],
        })
    if total is not None:
        markets.append({
            "key": "totals",
            "outcomes": [
                {"name": "Over", "price": total_prices[0], "point": total},
                {"name": "Under", "price": total_prices[1], "point": total},
            ],
        })
    return {"key": key, "title": key.title(), "markets": markets}


def make_event(
    event_id: str = "evt-1",
    hours_from_now: float = 6,
    books: Optional[List[Dict[str, Any]]] = None,
    home: str = "Kansas City Chiefs",
    away: str = "Buffalo Bills",
) -> Dict[str, Any]:
    commence = utcnow() + timedelta(hours=hours_from_now)
    return {
        "id": event_id,
        "sport_key": "americanfootball_nfl",
        "commence_time": commence.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "home_team": home,
        "away_team": away,
        "bookmakers": books if books is not None else [make_book("draftkings", home, away)],
    }


def make_props_payload(event_id: str, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Event-odds payload with player prop markets.

    ``entries`` items: {book, market, player, point, over, under}
    """
    books: Dict[str, Dict[str, Any]] = {}
    for e in entries:
        book = books.setdefault(e["book"], {"key": e["book"], "title": e["book"], "markets": []})
        market = next((m for m in book["markets"] if m["key"] == e["market"]), None)
        if market is None:
            market = {"key": e["market"], "outcomes": []}
            book["markets"].append(market)
        if e.get("over") is not None:
            market["outcomes"].append({"name": "Over", "description": e["player"], "price": e["over"], "point": e["point"]})
        if e.get("under") is not None:
            market["outcomes"].append({"name": "Under", "description": e["player"], "price": e["under"], "point": e["point"]})
    return {"id": event_id, "bookmakers": list(books.values())}


def seed_game(repository, external_id: str = "evt-1", sport: str = "NFL", hours_from_now: float = 6):
    return repository.upsert_game({
        "external_id": external_id,
        "sport": sport,
        "home_team": "Kansas City Chiefs",
        "away_team": "Buffalo Bills",
        "game_date": utcnow() + timedelta(hours=hours_from_now),
        "status": "scheduled",
    })


def seed_prop(repository, game_id: str, book_key: str, line: float, over: int, under: int,
              player: str = "Patrick Mahomes", prop_type: str = "Pass Yds", is_alternate: bool = False):
    from oddsedge.services.core.bookmakers import display_name

    return repository.upsert_player_prop({
        "game_id": game_id,
        "player_name": player,
        "prop_type": prop_type,
        "line": line,
        "over_odds": over,
        "under_odds": under,
        "book_key": book_key,
        "sportsbook": display_name(book_key),
        "is_alternate": is_alternate,
    })
