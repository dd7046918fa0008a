"""
Market position of one book's player prop relative to every other book
quoting the same line: percentile rank, books it beats or trails, market
spread and whether the reference books agree.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from oddsedge.services.analysis.odds_math import payout_per_unit

EFFICIENT_SPREAD = 20  # cents between best and worst price
SHARP_AGREEMENT_RANGE = 5
HIGH_PERCENTILE = 80
MEDIUM_PERCENTILE = 50


@dataclass(frozen=True)
class BookPrice:
    book_key: str
    sportsbook: str
    price: int


def _best_first(prices: Sequence[BookPrice]) -> List[BookPrice]:
    return sorted(prices, key=lambda p: (-payout_per_unit(p.price), p.sportsbook))


def market_position(selected_price: int, prices: Sequence[BookPrice]) -> Dict[str, Any]:
    """
    Rank ``selected_price`` among ``prices`` (best payout first).

    Percentile is 100 for the best price and ``100/n`` for the worst.
    """
    ranked = _best_first(prices)
    rank = next(i for i, p in enumerate(ranked) if p.price == selected_price)
    n = len(ranked)
    return {
        "percentile": round((n - rank) / n * 100),
        "better_than": [p.sportsbook for p in ranked[rank + 1:] if p.price != selected_price],
        "worse_than": [p.sportsbook for p in ranked[:rank]],
        "market_average_odds": round(sum(p.price for p in ranked) / n),
        "market_best_odds": ranked[0].price,
        "market_worst_odds": ranked[-1].price,
    }


def _matches(row: Any, book: str) -> bool:
    wanted = book.lower()
    return row.book_key.lower() == wanted or row.sportsbook.lower() == wanted


def analyze_prop_market(
    selected_book: str,
    props: Sequence[Any],
    sharp_books: Sequence[str],
) -> Optional[Dict[str, Any]]:
    """
    Where ``selected_book`` stands in a player-prop market.

    Args:
        selected_book: Book key or display name
        props: PlayerProp-like rows for one player/prop (any lines)
        sharp_books: Reference book keys

    Returns:
        Analysis dict, or None when the book has no two-sided quote or fewer
        than two books quote its line.
    """
    complete = [p for p in props if p.over_odds is not None and p.under_odds is not None]
    selected = next((p for p in complete if _matches(p, selected_book)), None)
    if selected is None:
        return None

    same_line = [p for p in complete if p.line == selected.line]
    if len(same_line) < 2:
        return None

    over = market_position(
        selected.over_odds, [BookPrice(p.book_key, p.sportsbook, p.over_odds) for p in same_line]
    )
    under = market_position(
        selected.under_odds, [BookPrice(p.book_key, p.sportsbook, p.under_odds) for p in same_line]
    )

    spread = (
        abs(over["market_best_odds"] - over["market_worst_odds"])
        + abs(under["market_best_odds"] - under["market_worst_odds"])
    ) / 2
    is_efficient = spread < EFFICIENT_SPREAD

    sharp_keys = {k.lower() for k in sharp_books}
    sharp_over = [p.over_odds for p in same_line if p.book_key.lower() in sharp_keys]
    sharp_range = max(sharp_over) - min(sharp_over) if len(sharp_over) > 1 else 0
    sharps_agree = sharp_range < SHARP_AGREEMENT_RANGE

    avg_percentile = (over["percentile"] + under["percentile"]) / 2
    best_over_book = next(p.sportsbook for p in same_line if p.over_odds == over["market_best_odds"])
    alternative = None
    if avg_percentile >= HIGH_PERCENTILE:
        confidence = "high"
        message = f"{selected.sportsbook} offers top-tier odds ({round(avg_percentile)}th percentile)."
    elif avg_percentile >= MEDIUM_PERCENTILE:
        confidence = "medium"
        message = (
            f"{selected.sportsbook} offers middle-of-the-pack odds "
            f"({round(avg_percentile)}th percentile). Consider shopping around."
        )
        if best_over_book != selected.sportsbook:
            alternative = best_over_book
    else:
        confidence = "low"
        message = f"{selected.sportsbook} offers below-average odds ({round(avg_percentile)}th percentile)."
        alternative = best_over_book

    if not is_efficient:
        message += " Market is inefficient: significant odds variation between books."
    elif sharps_agree:
        message += " Sharp books agree; this is a well-priced market."

    all_books = sorted(
        (
            {
                "sportsbook": p.sportsbook,
                "over_odds": p.over_odds,
                "under_odds": p.under_odds,
                "is_sharp": p.book_key.lower() in sharp_keys,
            }
            for p in same_line
        ),
        key=lambda b: (-payout_per_unit(b["over_odds"]), b["sportsbook"]),
    )

    return {
        "selected_book": {
            "sportsbook": selected.sportsbook,
            "line": selected.line,
            "over_odds": selected.over_odds,
            "under_odds": selected.under_odds,
        },
        "over_position": over,
        "under_position": under,
        "market_efficiency": {
            "spread": spread,
            "is_efficient": is_efficient,
            "sharpest_books_agree": sharps_agree,
        },
        "all_books": all_books,
        "recommendation": {
            "message": message,
            "confidence": confidence,
            "alternative_book": alternative,
        },
    }
