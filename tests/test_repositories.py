"""Repository tests against an in-memory database."""
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from conftest import seed_game, seed_prop

from oddsedge.core.errors import PersistenceError
from oddsedge.models import CronRun, FeaturedPick, Game, OddsQuote, PlayerProp
from oddsedge.repositories.odds_repository import ALT_ODDS_QUOTE_CONFLICT_FIELDS, PLAYER_PROP_CONFLICT_FIELDS
from oddsedge.repositories.run_repository import RUN_COMPLETED, RUN_FAILED
from oddsedge.services.analysis.selections import prop_selection_id
from oddsedge.services.pipeline.idempotency import key_for
from oddsedge.utils.timezone import utc_today, utcnow


class TestGameUpserts:

    def test_upsert_updates_in_place(self, db_session: Session, repository):
        first = seed_game(repository)
        again = repository.upsert_game({
            "external_id": "evt-1",
            "sport": "NFL",
            "home_team": "Kansas City Chiefs",
            "away_team": "Buffalo Bills",
            "game_date": first.game_date,
            "status": "live",
        })

        assert again.id == first.id
        assert db_session.query(Game).count() == 1
        assert db_session.query(Game).one().status == "live"

    def test_failed_write_rolls_back_and_raises(self, db_session: Session, repository):
        with pytest.raises(PersistenceError):
            repository.upsert_game({"external_id": "bad", "sport": None, "home_team": "A", "away_team": "B"})

        seed_game(repository, external_id="good")
        assert [g.external_id for g in db_session.query(Game).all()] == ["good"]

    def test_list_upcoming_filters(self, repository):
        seed_game(repository, external_id="past", hours_from_now=-10)
        seed_game(repository, external_id="nba", sport="NBA", hours_from_now=3)
        seed_game(repository, external_id="nfl", hours_from_now=2)

        upcoming = repository.list_upcoming_games(utcnow() - timedelta(hours=4))
        nba_only = repository.list_upcoming_games(utcnow(), sport="NBA")

        assert [g.external_id for g in upcoming] == ["nfl", "nba"]
        assert [g.external_id for g in nba_only] == ["nba"]


class TestQuoteUpserts:

    def test_alternate_lines_are_distinct_rows(self, db_session: Session, repository):
        game = seed_game(repository)
        base = {"game_id": game.id, "book_key": "fanduel", "sportsbook": "FanDuel", "market": "total",
                "is_alternate": True, "over_odds": -110, "under_odds": -110}

        repository.upsert_odds_quote(dict(base, line=44.5, total=44.5), ALT_ODDS_QUOTE_CONFLICT_FIELDS)
        repository.upsert_odds_quote(dict(base, line=47.5, total=47.5), ALT_ODDS_QUOTE_CONFLICT_FIELDS)
        repository.upsert_odds_quote(dict(base, line=47.5, total=47.5, over_odds=-120), ALT_ODDS_QUOTE_CONFLICT_FIELDS)

        rows = db_session.query(OddsQuote).order_by(OddsQuote.line).all()
        assert [r.line for r in rows] == [44.5, 47.5]
        assert rows[1].over_odds == -120
        assert repository.list_odds_quotes([game.id]) == []

    def test_prop_identity_includes_book_and_line(self, db_session: Session, repository):
        game = seed_game(repository)
        seed_prop(repository, game.id, "fanduel", 24.5, -110, -110)
        seed_prop(repository, game.id, "fanduel", 24.5, -115, -105)
        seed_prop(repository, game.id, "draftkings", 24.5, -110, -110)
        seed_prop(repository, game.id, "fanduel", 25.5, 100, -120)

        assert db_session.query(PlayerProp).count() == 3
        market = repository.list_prop_market(game.id, "Patrick Mahomes", "Pass Yds", line=24.5)
        assert sorted(p.book_key for p in market) == ["draftkings", "fanduel"]

    def test_longest_keys_fit_their_columns(self, db_session: Session, repository):
        """Player, prop type and sportsbook at their column limits still produce a storable key."""
        game = seed_game(repository)
        record = {
            "game_id": game.id,
            "player_name": "P" * PlayerProp.__table__.c.player_name.type.length,
            "prop_type": "T" * PlayerProp.__table__.c.prop_type.type.length,
            "sportsbook": "S" * PlayerProp.__table__.c.sportsbook.type.length,
            "line": -1234.5,
            "is_alternate": True,
        }
        quote = {"game_id": game.id, "book_key": "b" * OddsQuote.__table__.c.book_key.type.length,
                 "market": "moneyline", "is_alternate": True, "line": -1234.5}

        prop_key = key_for(record, PLAYER_PROP_CONFLICT_FIELDS)
        quote_key = key_for(quote, ALT_ODDS_QUOTE_CONFLICT_FIELDS)
        selection_id = prop_selection_id(game.id, record["player_name"], record["prop_type"], "under", -1234.5)

        assert len(prop_key) <= PlayerProp.__table__.c.dedupe_key.type.length
        assert len(quote_key) <= OddsQuote.__table__.c.dedupe_key.type.length
        assert len(selection_id) <= FeaturedPick.__table__.c.selection_id.type.length

        seed_prop(repository, game.id, "fanduel", -1234.5, -110, -110,
                  player=record["player_name"], prop_type=record["prop_type"], is_alternate=True)
        assert db_session.query(PlayerProp).one().dedupe_key.startswith(game.id)


class TestRunRepository:

    def test_run_closes_exactly_once(self, db_session: Session, repository):
        run = repository.create_run(utc_today())

        assert repository.finish_run(run.id, RUN_COMPLETED, results={"errors": []}) is True
        assert repository.finish_run(run.id, RUN_FAILED, error="late") is False

        stored = db_session.query(CronRun).one()
        assert stored.status == RUN_COMPLETED
        assert stored.error is None

    def test_count_completed_is_per_day(self, repository):
        today = utc_today()
        for day in (today, today, today - timedelta(days=1)):
            run = repository.create_run(day)
            repository.finish_run(run.id, RUN_COMPLETED, results={})
        repository.create_run(today)

        assert repository.count_completed_runs(today) == 2
        assert repository.latest_run().status == "running"

    def test_rejects_non_terminal_status(self, repository):
        run = repository.create_run(utc_today())

        with pytest.raises(ValueError):
            repository.finish_run(run.id, "running")
