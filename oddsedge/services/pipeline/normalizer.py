"""
Normalization of raw odds-feed payloads into typed quotes.

Each market type has its own quote class; a book that lists no usable
market for an event yields a ``BookLines`` with an empty ``quotes`` list,
which is a valid state (skipped by the collector, not an error).
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from oddsedge.services.core.bookmakers import display_name
from oddsedge.utils.timezone import parse_iso_utc

MARKET_SPREAD = "spread"
MARKET_TOTAL = "total"
MARKET_MONEYLINE = "moneyline"

_PROP_PREFIXES = re.compile(r"^(player_|batter_|pitcher_)")


@dataclass(frozen=True)
class SpreadQuote:
    home_point: float
    away_point: float
    home_price: int
    away_price: int
    market: str = field(default=MARKET_SPREAD, init=False)

    @property
    def line(self) -> float:
        return self.home_point


@dataclass(frozen=True)
class TotalQuote:
    point: float
    over_price: int
    under_price: int
    market: str = field(default=MARKET_TOTAL, init=False)

    @property
    def line(self) -> float:
        return self.point


@dataclass(frozen=True)
class MoneylineQuote:
    home_price: int
    away_price: int
    market: str = field(default=MARKET_MONEYLINE, init=False)

    @property
    def line(self) -> None:
        return None


MarketQuote = Union[SpreadQuote, TotalQuote, MoneylineQuote]


@dataclass
class BookLines:
    book_key: str
    sportsbook: str
    quotes: List[MarketQuote] = field(default_factory=list)

    @property
    def has_markets(self) -> bool:
        return bool(self.quotes)


@dataclass
class EventLines:
    event_id: str
    home_team: str
    away_team: str
    commence_time: Optional[datetime]
    books: List[BookLines] = field(default_factory=list)


@dataclass(frozen=True)
class PropQuote:
    book_key: str
    sportsbook: str
    player_name: str
    prop_type: str
    line: float
    over_price: Optional[int]
    under_price: Optional[int]
    is_alternate: bool


def format_prop_type(market_key: str) -> str:
    """
    Display name of a prop market.

    Examples:
        >>> format_prop_type("player_pass_yds_alternate")
        'Pass Yds'
        >>> format_prop_type("batter_total_bases")
        'Total Bases'
    """
    name = _PROP_PREFIXES.sub("", market_key).replace("_alternate", "")
    return " ".join(word[:1].upper() + word[1:] for word in name.split("_") if word)


def _market(book: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    for market in book.get("markets") or []:
        if market.get("key") == key:
            return market
    return None


def _outcome(market: Optional[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    if not market:
        return None
    for outcome in market.get("outcomes") or []:
        if outcome.get("name") == name:
            return outcome
    return None


def _priced(*outcomes: Optional[Dict[str, Any]]) -> bool:
    """True when every outcome is present and carries a price."""
    return all(o is not None and o.get("price") is not None for o in outcomes)


def _allowed_books(raw: Dict[str, Any], book_keys: Optional[Iterable[str]]) -> List[Dict[str, Any]]:
    books = raw.get("bookmakers") or []
    if book_keys is None:
        return list(books)
    allowed = set(book_keys)
    return [b for b in books if b.get("key") in allowed]


def parse_book_lines(book: Dict[str, Any], home_team: str, away_team: str) -> BookLines:
    """Main-line spread, total and moneyline for one book; only complete pairs count."""
    lines = BookLines(book_key=book.get("key", ""), sportsbook=display_name(book.get("key", ""), book.get("title", "")))

    spreads = _market(book, "spreads")
    home, away = _outcome(spreads, home_team), _outcome(spreads, away_team)
    if _priced(home, away) and home.get("point") is not None and away.get("point") is not None:
        lines.quotes.append(SpreadQuote(home["point"], away["point"], home["price"], away["price"]))

    totals = _market(book, "totals")
    over, under = _outcome(totals, "Over"), _outcome(totals, "Under")
    if _priced(over, under) and over.get("point") is not None:
        lines.quotes.append(TotalQuote(over["point"], over["price"], under["price"]))

    h2h = _market(book, "h2h")
    home, away = _outcome(h2h, home_team), _outcome(h2h, away_team)
    if _priced(home, away):
        lines.quotes.append(MoneylineQuote(home["price"], away["price"]))

    return lines


def parse_event(raw: Dict[str, Any], book_keys: Optional[Iterable[str]] = None) -> EventLines:
    """
    Typed view of one event from the game-lines endpoint.

    Raises:
        ValueError: If the event has no id
    """
    event_id = raw.get("id")
    if not event_id:
        raise ValueError("event has no id")
    home_team = raw.get("home_team", "")
    away_team = raw.get("away_team", "")
    return EventLines(
        event_id=event_id,
        home_team=home_team,
        away_team=away_team,
        commence_time=parse_iso_utc(raw.get("commence_time")),
        books=[parse_book_lines(b, home_team, away_team) for b in _allowed_books(raw, book_keys)],
    )


def parse_alternate_lines(
    raw: Dict[str, Any],
    home_team: str,
    book_keys: Optional[Iterable[str]] = None,
) -> List[BookLines]:
    """
    Alternate spreads and totals, one quote per line per book.

    Spread outcomes are paired on the home point (home -3.5 with away +3.5);
    totals by point (Over 47.5 with Under 47.5). Unpaired outcomes are dropped.
    """
    result = []
    for book in _allowed_books(raw, book_keys):
        lines = BookLines(book_key=book.get("key", ""), sportsbook=display_name(book.get("key", ""), book.get("title", "")))

        spread_pairs: Dict[float, Dict[str, Dict[str, Any]]] = {}
        for outcome in (_market(book, "alternate_spreads") or {}).get("outcomes") or []:
            if outcome.get("point") is None:
                continue
            if outcome.get("name") == home_team:
                spread_pairs.setdefault(outcome["point"], {})["home"] = outcome
            else:
                spread_pairs.setdefault(-outcome["point"], {})["away"] = outcome
        for pair in spread_pairs.values():
            if _priced(pair.get("home"), pair.get("away")):
                lines.quotes.append(SpreadQuote(
                    pair["home"]["point"], pair["away"]["point"], pair["home"]["price"], pair["away"]["price"],
                ))

        total_pairs: Dict[float, Dict[str, Dict[str, Any]]] = {}
        for outcome in (_market(book, "alternate_totals") or {}).get("outcomes") or []:
            if outcome.get("point") is None or outcome.get("name") not in ("Over", "Under"):
                continue
            total_pairs.setdefault(outcome["point"], {})[outcome["name"]] = outcome
        for point, pair in total_pairs.items():
            if _priced(pair.get("Over"), pair.get("Under")):
                lines.quotes.append(TotalQuote(point, pair["Over"]["price"], pair["Under"]["price"]))

        result.append(lines)
    return result


def parse_player_props(raw: Dict[str, Any], book_keys: Optional[Iterable[str]] = None) -> List[PropQuote]:
    """
    Over/under player props from an event-odds payload.

    Outcomes are grouped by player (and by point for alternate markets, which
    list several lines per player). The line is the Over point, else the
    Under point; groups with no line are skipped.
    """
    props: List[PropQuote] = []
    for book in _allowed_books(raw, book_keys):
        book_key = book.get("key", "")
        sportsbook = display_name(book_key, book.get("title", ""))

        for market in book.get("markets") or []:
            market_key = market.get("key", "")
            is_alternate = "_alternate" in market_key
            prop_type = format_prop_type(market_key)

            groups: Dict[Tuple[str, Optional[float]], Dict[str, Dict[str, Any]]] = {}
            for outcome in market.get("outcomes") or []:
                player = outcome.get("description")
                side = outcome.get("name")
                if not player or side not in ("Over", "Under"):
                    continue
                group_key = (player, outcome.get("point") if is_alternate else None)
                groups.setdefault(group_key, {})[side] = outcome

            for (player, _), sides in groups.items():
                over, under = sides.get("Over"), sides.get("Under")
                line = (over or {}).get("point")
                if line is None:
                    line = (under or {}).get("point")
                if line is None:
                    continue
                props.append(PropQuote(
                    book_key=book_key,
                    sportsbook=sportsbook,
                    player_name=player,
                    prop_type=prop_type,
                    line=line,
                    over_price=(over or {}).get("price"),
                    under_price=(under or {}).get("price"),
                    is_alternate=is_alternate,
                ))
    return props


def quote_record(game_id: str, book_key: str, sportsbook: str, quote: MarketQuote, is_alternate: bool) -> Dict[str, Any]:
    """Repository record for one market quote."""
    record: Dict[str, Any] = {
        "game_id": game_id,
        "book_key": book_key,
        "sportsbook": sportsbook,
        "market": quote.market,
        "is_alternate": is_alternate,
        "line": quote.line,
    }
    if isinstance(quote, SpreadQuote):
        record.update(
            spread_home=quote.home_point,
            spread_away=quote.away_point,
            spread_home_odds=quote.home_price,
            spread_away_odds=quote.away_price,
        )
    elif isinstance(quote, TotalQuote):
        record.update(total=quote.point, over_odds=quote.over_price, under_odds=quote.under_price)
    else:
        record.update(moneyline_home=quote.home_price, moneyline_away=quote.away_price)
    return record


def prop_record(game_id: str, prop: PropQuote) -> Dict[str, Any]:
    return {
        "game_id": game_id,
        "player_name": prop.player_name,
        "prop_type": prop.prop_type,
        "line": prop.line,
        "over_odds": prop.over_price,
        "under_odds": prop.under_price,
        "book_key": prop.book_key,
        "sportsbook": prop.sportsbook,
        "is_alternate": prop.is_alternate,
    }
