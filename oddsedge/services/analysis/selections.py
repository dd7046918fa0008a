"""
Builders turning stored quotes into edge-engine inputs.

A game has six sides (home/away spread, over/under, home/away moneyline);
a player prop has two (over/under). Each side becomes a list of
``SideQuote`` with the opposing price attached for de-vigging. Alternate
spread and total rows add further lines for the same sides.
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from oddsedge.services.analysis.consensus import BookOdds
from oddsedge.services.analysis.edge_engine import SideQuote
from oddsedge.services.analysis.line_adjustment import DIRECTION_DOWN, DIRECTION_NONE, DIRECTION_UP
from oddsedge.services.pipeline.idempotency import stable_key


@dataclass(frozen=True)
class GameSide:
    market: str
    side: str
    line: Callable[[BookOdds], Optional[float]]
    price: Callable[[BookOdds], Optional[int]]
    opposite: Callable[[BookOdds], Optional[int]]
    direction: int = DIRECTION_NONE


# Spread sides are priced on the team's own point, so a higher line helps them
GAME_SIDES: Tuple[GameSide, ...] = (
    GameSide("spread", "home", lambda o: o.spread_home, lambda o: o.spread_home_odds, lambda o: o.spread_away_odds,
             DIRECTION_UP),
    GameSide("spread", "away", lambda o: o.spread_away, lambda o: o.spread_away_odds, lambda o: o.spread_home_odds,
             DIRECTION_UP),
    GameSide("total", "over", lambda o: o.total, lambda o: o.over_odds, lambda o: o.under_odds, DIRECTION_DOWN),
    GameSide("total", "under", lambda o: o.total, lambda o: o.under_odds, lambda o: o.over_odds, DIRECTION_UP),
    GameSide("moneyline", "home", lambda o: None, lambda o: o.moneyline_home, lambda o: o.moneyline_away),
    GameSide("moneyline", "away", lambda o: None, lambda o: o.moneyline_away, lambda o: o.moneyline_home),
)

PROP_SIDES = ("over", "under")
PROP_LINE_DIRECTION = {"over": DIRECTION_DOWN, "under": DIRECTION_UP}


def game_side_quotes(books: Sequence[BookOdds], side: GameSide) -> List[SideQuote]:
    quotes = []
    for book in books:
        price = side.price(book)
        if price is None:
            continue
        if side.market != "moneyline" and side.line(book) is None:
            continue
        quotes.append(SideQuote(book.book_key, book.sportsbook, side.line(book), price, side.opposite(book)))
    return quotes


def alternate_side_quotes(rows: Sequence[Any], side: GameSide) -> List[SideQuote]:
    """Side quotes from alternate-line OddsQuote rows of the side's market."""
    quotes = []
    for row in rows:
        if not row.is_alternate or row.market != side.market:
            continue
        price, line = side.price(row), side.line(row)
        if price is None or line is None:
            continue
        quotes.append(SideQuote(row.book_key, row.sportsbook, line, price, side.opposite(row), is_alternate=True))
    return quotes


def game_selection_label(side: GameSide, line: Optional[float], home_team: str, away_team: str) -> str:
    team = home_team if side.side == "home" else away_team
    if side.market == "spread":
        return f"{team} {line:+g}"
    if side.market == "total":
        return f"{side.side.capitalize()} {line:g}"
    return f"{team} ML"


def game_selection_id(game_id: str, market: str, side: str, line: Optional[float]) -> str:
    return stable_key([game_id, market, side, line])


def group_props(rows: Sequence[Any]) -> "OrderedDict[Tuple[str, str, str], List[Any]]":
    """Group PlayerProp-like rows by (game_id, player_name, prop_type), first-seen order."""
    groups: "OrderedDict[Tuple[str, str, str], List[Any]]" = OrderedDict()
    for row in rows:
        groups.setdefault((row.game_id, row.player_name, row.prop_type), []).append(row)
    return groups


def prop_side_quotes(rows: Sequence[Any], side: str) -> List[SideQuote]:
    quotes = []
    for row in rows:
        price = row.over_odds if side == "over" else row.under_odds
        opposite = row.under_odds if side == "over" else row.over_odds
        if price is None:
            continue
        quotes.append(SideQuote(
            row.book_key, row.sportsbook, row.line, price, opposite, is_alternate=bool(getattr(row, "is_alternate", False))
        ))
    return quotes


def prop_selection_label(player_name: str, prop_type: str, side: str, line: float) -> str:
    return f"{player_name} {side.capitalize()} {line:g} {prop_type}"


def prop_selection_id(game_id: str, player_name: str, prop_type: str, side: str, line: float) -> str:
    return stable_key([game_id, "prop", player_name, prop_type, side, line])


def book_for(rows: Sequence[Any], book: str) -> Optional[Any]:
    """Row quoted by ``book`` (key or display name, case-insensitive)."""
    wanted = book.lower()
    for row in rows:
        if row.book_key.lower() == wanted or row.sportsbook.lower() == wanted:
            return row
    return None
