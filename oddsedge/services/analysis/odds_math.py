"""American-odds conversions, no-vig probabilities and expected value."""
import math
from typing import Optional, Sequence, Tuple


def implied_probability(price: int) -> float:
    """
    Implied probability of an American price, vig included.

    Examples:
        >>> round(implied_probability(-110), 4)
        0.5238
        >>> implied_probability(100)
        0.5
    """
    if price > 0:
        return 100.0 / (price + 100.0)
    return -price / (-price + 100.0)


def american_to_decimal(price: int) -> float:
    if price > 0:
        return 1.0 + price / 100.0
    return 1.0 + 100.0 / abs(price)


def payout_per_unit(price: int) -> float:
    """Profit on a one-unit stake if the bet wins."""
    if price > 0:
        return price / 100.0
    return 100.0 / abs(price)


def probability_to_american(probability: float) -> int:
    """Fair American price for a probability in (0, 1)."""
    if not 0.0 < probability < 1.0:
        raise ValueError(f"probability must be in (0, 1), got {probability}")
    if probability >= 0.5:
        return int(round(-100.0 * probability / (1.0 - probability)))
    return int(round(100.0 * (1.0 - probability) / probability))


def remove_vig(price_a: int, price_b: int) -> Tuple[float, float]:
    """De-vig a two-way market by normalizing implied probabilities to sum to 1."""
    implied_a = implied_probability(price_a)
    implied_b = implied_probability(price_b)
    total = implied_a + implied_b
    return implied_a / total, implied_b / total


def expected_value_pct(fair_probability: float, price: int) -> float:
    """
    Expected value per unit staked, in percent.

    EV% = (fair * payout - (1 - fair)) * 100

    Examples:
        >>> round(expected_value_pct(0.52, -110), 2)
        -0.73
    """
    return (fair_probability * payout_per_unit(price) - (1.0 - fair_probability)) * 100.0


def kelly_fraction(probability: float, price: int) -> float:
    """
    Full Kelly stake as a fraction of bankroll: (b * p - q) / b.

    Negative when the price carries no edge.

    Examples:
        >>> kelly_fraction(0.55, 100)
        0.1
    """
    b = payout_per_unit(price)
    return round((b * probability - (1.0 - probability)) / b, 10)


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    total_weight = sum(weights)
    if total_weight <= 0:
        return sum(values) / len(values)
    return sum(v * w for v, w in zip(values, weights)) / total_weight


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation (0 for fewer than two values)."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
