"""
Consensus aggregator: merges per-market quote rows into one record per
(game, book) and orders each game's books for display.
"""
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from oddsedge.services.pipeline.normalizer import MARKET_MONEYLINE, MARKET_SPREAD, MARKET_TOTAL

_SPREAD_FIELDS = ("spread_home", "spread_away", "spread_home_odds", "spread_away_odds")
_TOTAL_FIELDS = ("total", "over_odds", "under_odds")
_MONEYLINE_FIELDS = ("moneyline_home", "moneyline_away")

_FIELDS_BY_MARKET = {
    MARKET_SPREAD: _SPREAD_FIELDS,
    MARKET_TOTAL: _TOTAL_FIELDS,
    MARKET_MONEYLINE: _MONEYLINE_FIELDS,
}


@dataclass
class BookOdds:
    """One book's merged main lines for a game; any market may be missing."""
    game_id: str
    book_key: str
    sportsbook: str
    spread_home: Optional[float] = None
    spread_away: Optional[float] = None
    spread_home_odds: Optional[int] = None
    spread_away_odds: Optional[int] = None
    total: Optional[float] = None
    over_odds: Optional[int] = None
    under_odds: Optional[int] = None
    moneyline_home: Optional[int] = None
    moneyline_away: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def moneyline_sort_key(odds: BookOdds) -> float:
    """
    Display priority: away moneyline, else home moneyline, else lowest.

    This is a presentation heuristic only; it carries no pricing meaning.
    """
    if odds.moneyline_away is not None:
        return float(odds.moneyline_away)
    if odds.moneyline_home is not None:
        return float(odds.moneyline_home)
    return float("-inf")


def aggregate_game_odds(rows: Iterable[Any]) -> Dict[str, List[BookOdds]]:
    """
    Group quote rows by (game, book) and merge their market types.

    Args:
        rows: OddsQuote-like objects (attribute access) in insertion order.
              Alternate-line rows are ignored.

    Returns:
        game_id -> books sorted by ``moneyline_sort_key`` descending; equal
        keys keep first-seen order.
    """
    merged: "OrderedDict[tuple, BookOdds]" = OrderedDict()

    for row in rows:
        if getattr(row, "is_alternate", False):
            continue
        key = (row.game_id, row.book_key)
        record = merged.get(key)
        if record is None:
            record = BookOdds(game_id=row.game_id, book_key=row.book_key, sportsbook=row.sportsbook)
            merged[key] = record

        for field_name in _FIELDS_BY_MARKET.get(row.market, ()):
            value = getattr(row, field_name, None)
            if value is not None:
                setattr(record, field_name, value)

    by_game: Dict[str, List[BookOdds]] = OrderedDict()
    for record in merged.values():
        by_game.setdefault(record.game_id, []).append(record)

    for books in by_game.values():
        # list.sort is stable, including with reverse=True
        books.sort(key=moneyline_sort_key, reverse=True)

    return by_game
