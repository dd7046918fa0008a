"""
Probability adjustment for lines away from the market consensus.

A selection quoted at an alternate line (Over 29.5 when the market sits at
27.5) has no reference books at its own line to de-vig. Its fair
probability is taken from the consensus line and shifted linearly by a
per-sport rate for each unit of line difference, then bounded to
[PROBABILITY_FLOOR, PROBABILITY_CEILING].

Direction says how the probability moves as the line goes up:
    -1  over sides (a higher line is harder to clear)
    +1  under sides, and spread sides priced on the team's own point
     0  no line (moneyline); never adjusted
"""
from typing import Dict, Optional

PROBABILITY_FLOOR = 0.05
PROBABILITY_CEILING = 0.95
DEFAULT_RATE = 0.02

DIRECTION_DOWN = -1
DIRECTION_UP = 1
DIRECTION_NONE = 0

# Probability change per unit of line movement, keyed by prop type display
# name or game market
LINE_ADJUSTMENT_RATES: Dict[str, Dict[str, float]] = {
    "NFL": {
        "Pass Yds": 0.01,
        "Pass Tds": 0.08,
        "Pass Completions": 0.02,
        "Pass Attempts": 0.02,
        "Pass Interceptions": 0.10,
        "Rush Yds": 0.015,
        "Rush Attempts": 0.025,
        "Receptions": 0.03,
        "Reception Yds": 0.015,
        "spread": 0.03,
        "total": 0.02,
    },
    "NBA": {
        "Points": 0.02,
        "Rebounds": 0.04,
        "Assists": 0.04,
        "Threes": 0.08,
        "Blocks": 0.10,
        "Steals": 0.10,
        "Points Rebounds Assists": 0.015,
        "Points Rebounds": 0.02,
        "Points Assists": 0.02,
        "spread": 0.025,
        "total": 0.015,
    },
    "MLB": {
        "Home Runs": 0.15,
        "Hits": 0.06,
        "Total Bases": 0.04,
        "Rbis": 0.08,
        "Runs Scored": 0.08,
        "Strikeouts": 0.05,
        "Hits Allowed": 0.05,
        "Earned Runs": 0.10,
        "spread": 0.04,
        "total": 0.03,
    },
    "NCAAF": {
        "Pass Yds": 0.01,
        "Pass Tds": 0.08,
        "Rush Yds": 0.015,
        "Receptions": 0.03,
        "Reception Yds": 0.015,
        "spread": 0.03,
        "total": 0.02,
    },
}


def adjustment_rate(sport: Optional[str], market: str) -> Optional[float]:
    """
    Per-unit rate for a sport's market or prop type.

    Unknown markets fall back to the sport's spread rate, then DEFAULT_RATE.
    Unknown sports get None: their alternate lines are not adjusted.

    Examples:
        >>> adjustment_rate("nfl", "Pass Yds")
        0.01
        >>> adjustment_rate("NBA", "Double Double")
        0.025
        >>> adjustment_rate("NHL", "total") is None
        True
    """
    rates = LINE_ADJUSTMENT_RATES.get((sport or "").upper())
    if rates is None:
        return None
    return rates.get(market, rates.get("spread", DEFAULT_RATE))


def adjust_probability(base_probability: float, line_difference: float, direction: int, rate: float) -> float:
    """Shift a consensus-line probability to a line ``line_difference`` units away."""
    if line_difference == 0 or direction == DIRECTION_NONE:
        return base_probability
    adjusted = base_probability + direction * line_difference * rate
    return max(PROBABILITY_FLOOR, min(PROBABILITY_CEILING, adjusted))
