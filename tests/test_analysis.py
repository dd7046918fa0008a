"""Tests for odds math, the edge engine, market position and featured picks."""
import random
from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from conftest import seed_game, seed_prop

from oddsedge.models import FeaturedPick
from oddsedge.repositories.odds_repository import ALT_ODDS_QUOTE_CONFLICT_FIELDS
from oddsedge.services.analysis.consensus import aggregate_game_odds
from oddsedge.services.analysis.edge_engine import (
    AnalysisResult,
    EdgeEngine,
    InsufficientMarketData,
    Selection,
    SideQuote,
    consensus_line,
    recommendation_score,
)
from oddsedge.services.analysis.featured_picks import Candidate, FeaturedPickSelector, rank_candidates
from oddsedge.services.analysis.line_adjustment import (
    DIRECTION_DOWN,
    DIRECTION_NONE,
    DIRECTION_UP,
    adjust_probability,
    adjustment_rate,
)
from oddsedge.services.analysis.market_position import analyze_prop_market, market_position, BookPrice
from oddsedge.services.analysis.odds_math import (
    expected_value_pct,
    implied_probability,
    kelly_fraction,
    probability_to_american,
    remove_vig,
)
from oddsedge.services.core.bookmakers import book_weight
from oddsedge.services.pipeline.normalizer import SpreadQuote, quote_record
from oddsedge.utils.timezone import utcnow

REFERENCE_BOOKS = ["fanduel", "betonlineag", "lowvig", "draftkings"]


def quote(book, price, opposite=-110, line=-3.5):
    return SideQuote(book, book.title(), line, price, opposite)


def selection(target="betmgm", line=-3.5):
    return Selection("g1|spread|home|-3.5", "Kansas City Chiefs -3.5", "spread", target, line)


# ─────────────────────────────────────────────────────────────
# Odds math
# ─────────────────────────────────────────────────────────────

class TestOddsMath:

    def test_implied_probability(self):
        assert implied_probability(-110) == pytest.approx(0.52381, abs=1e-5)
        assert implied_probability(150) == pytest.approx(0.4)

    def test_remove_vig_sums_to_one(self):
        over, under = remove_vig(-120, 100)
        assert over + under == pytest.approx(1.0)
        assert remove_vig(-110, -110) == pytest.approx((0.5, 0.5))

    def test_expected_value_at_minus_110(self):
        """Fair 52% at -110 prices slightly negative: 0.52 * 100/110 - 0.48."""
        assert expected_value_pct(0.52, -110) == pytest.approx(-0.7273, abs=1e-4)

    def test_expected_value_at_even_money(self):
        assert expected_value_pct(0.52, 100) == pytest.approx(4.0)

    def test_probability_to_american(self):
        assert probability_to_american(0.6) == -150
        assert probability_to_american(0.4) == 150
        with pytest.raises(ValueError):
            probability_to_american(1.0)

    def test_kelly_fraction(self):
        assert kelly_fraction(0.55, 100) == pytest.approx(0.1)
        assert kelly_fraction(0.5, -110) < 0


# ─────────────────────────────────────────────────────────────
# Edge engine
# ─────────────────────────────────────────────────────────────

class TestEdgeEngine:
    """Pure, deterministic pricing against a de-vigged reference consensus."""

    def engine(self, **kwargs):
        return EdgeEngine(REFERENCE_BOOKS, **kwargs)

    def test_positive_edge(self):
        quotes = [quote("betmgm", 110), quote("fanduel", -110), quote("lowvig", -110)]

        result = self.engine().analyze(selection(), quotes)

        assert isinstance(result, AnalysisResult)
        assert result.hit_probability == pytest.approx(0.5)
        assert result.ev_percentage == pytest.approx(5.0)
        assert result.has_edge is True
        assert result.agreement == pytest.approx(1.0)
        assert result.recommendation_score == 77.5
        assert result.best_book == "betmgm"
        assert result.reference_books == ("fanduel", "lowvig")
        assert "EV +5.00%" in result.reasoning

    def test_threshold_decides_edge(self):
        """EV of about -0.98% is an edge only when the threshold is below it."""
        quotes = [quote("betmgm", -102), quote("fanduel", -110), quote("lowvig", -110)]

        strict = self.engine().analyze(selection(), quotes)
        lenient = self.engine(edge_threshold_pct=-1.0).analyze(selection(), quotes)

        assert strict.ev_percentage == pytest.approx(-0.9804, abs=1e-4)
        assert strict.has_edge is False
        assert lenient.has_edge is True

    def test_reference_probabilities_are_weighted(self):
        quotes = [quote("betmgm", 100), quote("fanduel", -120, 100), quote("lowvig", 100, -120)]

        result = self.engine().analyze(selection(), quotes)

        fd, lv = remove_vig(-120, 100)[0], remove_vig(100, -120)[0]
        expected = (fd * book_weight("fanduel") + lv * book_weight("lowvig")) / (
            book_weight("fanduel") + book_weight("lowvig")
        )
        assert result.hit_probability == pytest.approx(expected)
        assert result.agreement < 1.0

    def test_no_reference_books(self):
        result = self.engine().analyze(selection(), [quote("betmgm", 110), quote("caesars", -105)])

        assert isinstance(result, InsufficientMarketData)
        assert result.available_books == ["betmgm", "caesars"]

    def test_target_never_counts_as_its_own_reference(self):
        """A sharp target with only one other reference is below the floor."""
        quotes = [quote("fanduel", 110), quote("lowvig", -110)]

        result = self.engine().analyze(selection(target="fanduel"), quotes)

        assert isinstance(result, InsufficientMarketData)

    def test_missing_target_quote(self):
        quotes = [quote("fanduel", -110), quote("lowvig", -110)]

        result = self.engine().analyze(selection(target="betmgm"), quotes)

        assert isinstance(result, InsufficientMarketData)
        assert "betmgm" in result.reason

    def test_references_must_quote_the_same_line(self):
        quotes = [quote("betmgm", 110), quote("fanduel", -110), quote("lowvig", -110, line=-4.0)]

        result = self.engine().analyze(selection(), quotes)

        assert isinstance(result, InsufficientMarketData)

    def test_alternate_line_priced_from_consensus_line(self):
        """Over 29.5 with references only at 27.5: fair 0.5 shifted down 2 points at 2% per point."""
        quotes = [
            SideQuote("betmgm", "BetMGM", 29.5, 150, -190, is_alternate=True),
            SideQuote("fanduel", "FanDuel", 27.5, -110, -110),
            SideQuote("lowvig", "LowVig", 27.5, -110, -110),
        ]
        over = Selection("g1|prop|over|29.5", "Over 29.5", "prop", "betmgm", 29.5, DIRECTION_DOWN, 0.02)

        result = self.engine().analyze(over, quotes)

        assert isinstance(result, AnalysisResult)
        assert result.line_adjusted is True
        assert result.consensus_line == 27.5
        assert result.line_distance == 2.0
        assert result.hit_probability == pytest.approx(0.46)
        assert result.probability_adjustment == pytest.approx(-0.04)
        assert result.ev_percentage == pytest.approx(15.0)
        assert result.recommendation_score == 93.5  # 97.5 less 2 points per unit of line moved
        assert result.reference_books == ("fanduel", "lowvig")
        assert "consensus line 27.5" in result.reasoning

    def test_alternate_line_needs_an_adjustment_rate(self):
        quotes = [quote("betmgm", 150, line=-2.5), quote("fanduel", -110), quote("lowvig", -110)]

        unrated = self.engine().analyze(selection(line=-2.5), quotes)
        rated = self.engine().analyze(
            Selection("g1|spread|home|-2.5", "Kansas City Chiefs -2.5", "spread", "betmgm", -2.5, DIRECTION_UP, 0.03),
            quotes,
        )

        assert isinstance(unrated, InsufficientMarketData)
        assert rated.hit_probability == pytest.approx(0.53)

    def test_main_line_consensus_ignores_alternate_ladders(self):
        quotes = [
            quote("betmgm", 110),
            quote("fanduel", -110),
            quote("lowvig", -110),
            SideQuote("fanduel", "FanDuel", -6.5, 200, -250, is_alternate=True),
            SideQuote("lowvig", "LowVig", -6.5, 205, -255, is_alternate=True),
            SideQuote("betonlineag", "Betonlineag", -6.5, 195, -245, is_alternate=True),
        ]

        result = self.engine().analyze(selection(), quotes)

        assert result.consensus_line == -3.5
        assert result.line_adjusted is False

    def test_kelly_stake_is_fractional_and_capped(self):
        engine = self.engine()

        assert engine.stake(0.55, 100) == pytest.approx((0.1, 2.5))
        assert engine.stake(0.9, 100)[1] == pytest.approx(5.0)
        assert engine.stake(0.5, -110)[1] == 0.0

        result = engine.analyze(selection(), [quote("betmgm", 110), quote("fanduel", -110), quote("lowvig", -110)])
        assert result.kelly_fraction == pytest.approx(0.05 / 1.1)
        assert result.stake_pct == pytest.approx(0.05 / 1.1 * 25)
        assert result.to_dict()["stake_pct"] == 1.14

    def test_deterministic_regardless_of_quote_order(self):
        quotes = [
            quote("betmgm", 105),
            quote("fanduel", -112, -108),
            quote("lowvig", -105, -115),
            quote("betonlineag", -110, -110),
            quote("caesars", 105),
        ]
        engine = self.engine()
        baseline = engine.analyze(selection(), quotes)

        shuffled = list(quotes)
        random.Random(7).shuffle(shuffled)

        assert engine.analyze(selection(), shuffled) == baseline
        assert baseline.best_book == "betmgm"

    def test_recommendation_score_shape(self):
        assert recommendation_score(5.0, 1.0, 2) == 77.5
        assert recommendation_score(50.0, 1.0, 10) == 100.0
        assert recommendation_score(-50.0, 0.0, 0) == 10.0

    def test_consensus_line(self):
        assert consensus_line([-3.5, -3.5, -3.0], -3.0) == -3.5
        assert consensus_line([-3.0, -3.5], -3.0) == -3.0
        assert consensus_line([-3.0, -4.0], -3.5) == -4.0
        assert consensus_line([], 47.5) == 47.5


class TestLineAdjustment:

    def test_rates_by_sport_and_market(self):
        assert adjustment_rate("NFL", "Pass Yds") == 0.01
        assert adjustment_rate("mlb", "total") == 0.03
        assert adjustment_rate("NBA", "Double Double") == 0.025
        assert adjustment_rate("NHL", "spread") is None
        assert adjustment_rate(None, "spread") is None

    def test_direction_and_bounds(self):
        assert adjust_probability(0.5, 2.0, DIRECTION_DOWN, 0.02) == pytest.approx(0.46)
        assert adjust_probability(0.5, 2.0, DIRECTION_UP, 0.02) == pytest.approx(0.54)
        assert adjust_probability(0.9, -10.0, DIRECTION_DOWN, 0.02) == 0.95
        assert adjust_probability(0.1, 10.0, DIRECTION_DOWN, 0.02) == 0.05
        assert adjust_probability(0.5, 3.0, DIRECTION_NONE, 0.02) == 0.5


# ─────────────────────────────────────────────────────────────
# Consensus aggregation
# ─────────────────────────────────────────────────────────────

def row(book, market, **fields):
    return SimpleNamespace(game_id="g1", book_key=book, sportsbook=book.title(), market=market,
                           is_alternate=fields.pop("is_alternate", False), **fields)


class TestAggregateGameOdds:

    def test_merges_markets_and_orders_books(self):
        rows = [
            row("draftkings", "spread", spread_home=-3.5, spread_away=3.5, spread_home_odds=-110, spread_away_odds=-110),
            row("draftkings", "moneyline", moneyline_home=-170, moneyline_away=145),
            row("fanduel", "moneyline", moneyline_home=-175, moneyline_away=150),
            row("caesars", "total", total=47.5, over_odds=-110, under_odds=-110),
            row("draftkings", "spread", spread_home=-7.5, is_alternate=True),
        ]

        books = aggregate_game_odds(rows)["g1"]

        assert [b.book_key for b in books] == ["fanduel", "draftkings", "caesars"]
        draftkings = books[1]
        assert draftkings.spread_home == -3.5
        assert draftkings.moneyline_away == 145
        assert books[2].total == 47.5

    def test_equal_sort_keys_keep_first_seen_order(self):
        rows = [row("betmgm", "total", total=44.5), row("caesars", "total", total=44.5)]

        assert [b.book_key for b in aggregate_game_odds(rows)["g1"]] == ["betmgm", "caesars"]


# ─────────────────────────────────────────────────────────────
# Market position
# ─────────────────────────────────────────────────────────────

def prop_row(book, over, under, line=25.5):
    return SimpleNamespace(book_key=book, sportsbook=book.title(), line=line, over_odds=over, under_odds=under)


class TestMarketPosition:

    def test_percentile_and_neighbours(self):
        prices = [BookPrice("fanduel", "FanDuel", -105), BookPrice("draftkings", "DraftKings", -110),
                  BookPrice("betmgm", "BetMGM", -120)]

        position = market_position(-110, prices)

        assert position["percentile"] == 67
        assert position["better_than"] == ["BetMGM"]
        assert position["worse_than"] == ["FanDuel"]
        assert position["market_best_odds"] == -105
        assert position["market_average_odds"] == -112

    def test_analyze_prop_market(self):
        rows = [prop_row("draftkings", -110, -110), prop_row("fanduel", -105, -115), prop_row("betmgm", -120, 100),
                prop_row("caesars", -150, 120, line=26.5)]

        analysis = analyze_prop_market("DraftKings", rows, ["fanduel", "draftkings"])

        assert analysis["selected_book"]["line"] == 25.5
        assert len(analysis["all_books"]) == 3
        assert analysis["recommendation"]["confidence"] == "medium"
        assert analysis["recommendation"]["alternative_book"] == "Fanduel"
        assert analysis["market_efficiency"]["sharpest_books_agree"] is False

    def test_insufficient_market(self):
        rows = [prop_row("draftkings", -110, -110), prop_row("fanduel", -105, None)]

        assert analyze_prop_market("draftkings", rows, ["fanduel"]) is None
        assert analyze_prop_market("pinnacle", rows, ["fanduel"]) is None


# ─────────────────────────────────────────────────────────────
# Featured picks
# ─────────────────────────────────────────────────────────────

def seed_spread(repository, game_id, book_key, home_price, away_price, point=-3.5):
    from oddsedge.services.core.bookmakers import display_name

    return repository.upsert_odds_quote(
        quote_record(game_id, book_key, display_name(book_key), SpreadQuote(point, -point, home_price, away_price), False)
    )


def fake_candidate(score, distance, selection_id):
    analysis = SimpleNamespace(recommendation_score=score, line_distance=distance, selection_id=selection_id)
    return Candidate(game=None, pick_type="spread", analysis=analysis)


class TestFeaturedPicks:
    """Ranking, thresholds and whole-day replacement."""

    def selector(self, repository, **kwargs):
        return FeaturedPickSelector(repository, EdgeEngine(REFERENCE_BOOKS), **kwargs)

    def seed_market(self, repository):
        game = seed_game(repository)
        for book in ("fanduel", "lowvig", "betonlineag"):
            seed_spread(repository, game.id, book, -110, -110)
            seed_prop(repository, game.id, book, 275.5, -110, -110)
        seed_spread(repository, game.id, "betmgm", 110, -130)
        seed_prop(repository, game.id, "betmgm", 275.5, 105, -125)
        return game

    def test_rank_candidates_tie_breaks(self):
        ranked = rank_candidates([
            fake_candidate(70.0, 0.5, "b"),
            fake_candidate(80.0, 1.0, "z"),
            fake_candidate(70.0, 0.0, "c"),
            fake_candidate(70.0, 0.5, "a"),
        ])

        assert [c.analysis.selection_id for c in ranked] == ["z", "c", "a", "b"]

    def test_generate_ranks_qualifying_picks(self, db_session: Session, repository):
        game = self.seed_market(repository)
        now = utcnow()

        summary = self.selector(repository).generate(now)

        assert summary == {"success": True, "generated": 2, "with_edge": 2}
        picks = repository.list_featured_picks(now.date())
        assert [p.rank for p in picks] == [1, 2]
        assert picks[0].pick_type == "spread"
        assert picks[0].selection == "Kansas City Chiefs -3.5"
        assert picks[0].sportsbook == "BetMGM"
        assert picks[0].game_info == "Buffalo Bills @ Kansas City Chiefs"
        assert picks[1].selection == "Patrick Mahomes Over 275.5 Pass Yds"
        assert picks[0].recommendation_score > picks[1].recommendation_score
        assert picks[0].expires_at == game.game_date

    def test_generate_is_a_full_replace(self, db_session: Session, repository):
        self.seed_market(repository)
        now = utcnow()
        stale_day = (now - timedelta(days=2)).date()
        repository.replace_featured_picks(stale_day, [{
            "sport": "NFL", "game_id": "old", "game_info": "old", "selection_id": "old", "pick_type": "spread",
            "selection": "old", "line": None, "odds": 100, "sportsbook": "BetMGM", "recommendation_score": 90,
            "hit_probability": 0.5, "ev_percentage": 1.0, "has_edge": True, "reasoning": None,
            "expires_at": now - timedelta(days=1),
        }], now - timedelta(days=2))

        selector = self.selector(repository)
        selector.generate(now)
        selector.generate(now)

        assert db_session.query(FeaturedPick).filter(FeaturedPick.pick_date == now.date()).count() == 2
        assert db_session.query(FeaturedPick).filter(FeaturedPick.pick_date == stale_day).count() == 0

    def test_min_score_and_limit(self, repository):
        self.seed_market(repository)
        now = utcnow()

        assert self.selector(repository, limit=1).generate(now)["generated"] == 1
        assert self.selector(repository, min_score=95).generate(now)["generated"] == 0
        assert repository.list_featured_picks(now.date()) == []

    def test_alternate_spread_is_priced_and_featured(self, repository):
        """BetMGM hangs only an alternate -2.5; the market sits at -3.5."""
        game = seed_game(repository)
        for book in ("fanduel", "lowvig", "betonlineag"):
            seed_spread(repository, game.id, book, -110, -110)
        repository.upsert_odds_quote(
            quote_record(game.id, "betmgm", "BetMGM", SpreadQuote(-2.5, 2.5, 100, -120), True),
            ALT_ODDS_QUOTE_CONFLICT_FIELDS,
        )

        picks = self.selector(repository).select(utcnow())

        assert [c.analysis.selection for c in picks] == ["Kansas City Chiefs -2.5"]
        analysis = picks[0].analysis
        assert analysis.line_adjusted is True
        assert analysis.consensus_line == -3.5
        assert analysis.hit_probability == pytest.approx(0.53)
        assert analysis.ev_percentage == pytest.approx(6.0)
        assert analysis.reference_books == ("betonlineag", "fanduel", "lowvig")
