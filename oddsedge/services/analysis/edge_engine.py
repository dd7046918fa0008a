"""
No-vig probability and edge engine.

For one selection (a side of a two-way market) the engine:

1. finds the target book's quote at the selection's line
2. de-vigs each reference ("sharp") book's two-way pair at that line
3. averages the reference fair probabilities, weighted by book trust
4. prices the target quote against that fair probability (EV%)
5. scores the result 0-100 and sizes a fractional Kelly stake

When too few reference books quote the target's own line (an alternate
line) and the selection carries an adjustment rate, step 2 runs at the
consensus line instead and the fair probability is shifted to the target
line (see ``line_adjustment``); such results lose score points per unit of
line moved.

Results are a pure function of the quotes passed in. When the evidence is
too thin (no target quote, too few reference books) the engine returns
``InsufficientMarketData`` instead of raising.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from oddsedge.services.analysis.line_adjustment import DIRECTION_NONE, adjust_probability
from oddsedge.services.analysis.odds_math import (
    expected_value_pct,
    kelly_fraction,
    payout_per_unit,
    probability_to_american,
    remove_vig,
    std_dev,
    weighted_mean,
)
from oddsedge.services.core.bookmakers import book_weight

# Recommendation score shape
SCORE_BASE = 50.0
SCORE_EV_WEIGHT = 4.0
SCORE_EV_CAP = 10.0
SCORE_AGREEMENT_WEIGHT = 5.0
SCORE_DEPTH_WEIGHT = 5.0
DEPTH_SATURATION = 4
AGREEMENT_SPREAD_FACTOR = 20.0
# Score points lost per unit of line moved by an alternate-line adjustment
SCORE_ADJUSTED_LINE_PENALTY = 2.0

# Stake sizing
KELLY_MULTIPLIER = 0.25
KELLY_MAX_STAKE = 0.05


@dataclass(frozen=True)
class SideQuote:
    """One book's price for a selection plus the opposing side's price at the same line."""
    book_key: str
    sportsbook: str
    line: Optional[float]
    price: int
    opposite_price: Optional[int] = None
    is_alternate: bool = False


@dataclass(frozen=True)
class Selection:
    selection_id: str
    label: str
    market: str
    target_book: str
    line: Optional[float] = None
    line_direction: int = DIRECTION_NONE
    adjustment_rate: Optional[float] = None

    @property
    def adjustable(self) -> bool:
        return self.line is not None and self.line_direction != DIRECTION_NONE and self.adjustment_rate is not None


@dataclass(frozen=True)
class AnalysisResult:
    selection_id: str
    selection: str
    market: str
    target_book: str
    target_sportsbook: str
    target_price: int
    line: Optional[float]
    hit_probability: float
    fair_odds: int
    ev_percentage: float
    has_edge: bool
    best_book: str
    best_price: int
    recommendation_score: float
    consensus_line: Optional[float]
    line_distance: float
    agreement: float
    reference_books: Tuple[str, ...]
    reasoning: str
    line_adjusted: bool = False
    probability_adjustment: float = 0.0
    kelly_fraction: float = 0.0
    stake_pct: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selection_id": self.selection_id,
            "selection": self.selection,
            "market": self.market,
            "target_book": self.target_book,
            "sportsbook": self.target_sportsbook,
            "odds": self.target_price,
            "line": self.line,
            "hit_probability": round(self.hit_probability, 4),
            "fair_odds": self.fair_odds,
            "ev_percentage": round(self.ev_percentage, 2),
            "has_edge": self.has_edge,
            "best_book": self.best_book,
            "best_price": self.best_price,
            "recommendation_score": self.recommendation_score,
            "consensus_line": self.consensus_line,
            "line_distance": self.line_distance,
            "agreement": round(self.agreement, 4),
            "reference_books": list(self.reference_books),
            "reasoning": self.reasoning,
            "line_adjusted": self.line_adjusted,
            "probability_adjustment": round(self.probability_adjustment, 4),
            "kelly_fraction": round(self.kelly_fraction, 4),
            "stake_pct": round(self.stake_pct, 2),
        }


@dataclass(frozen=True)
class InsufficientMarketData:
    """Not enough evidence to analyze the selection."""
    selection_id: str
    reason: str
    available_books: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"selection_id": self.selection_id, "error": self.reason, "available_books": self.available_books}


EdgeAnalysis = Union[AnalysisResult, InsufficientMarketData]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def recommendation_score(ev_pct: float, agreement: float, reference_count: int) -> float:
    """
    Deterministic 0-100 score.

    50 + 4 * clamp(EV%, -10, 10) + 5 * agreement + 5 * depth, where depth is
    the reference-book count saturating at 4.
    """
    depth = min(reference_count, DEPTH_SATURATION) / DEPTH_SATURATION
    raw = (
        SCORE_BASE
        + SCORE_EV_WEIGHT * _clamp(ev_pct, -SCORE_EV_CAP, SCORE_EV_CAP)
        + SCORE_AGREEMENT_WEIGHT * agreement
        + SCORE_DEPTH_WEIGHT * depth
    )
    return round(_clamp(raw, 0.0, 100.0), 1)


def consensus_line(reference_lines: Sequence[Optional[float]], target_line: Optional[float]) -> Optional[float]:
    """
    Line quoted by the most reference books.

    Ties go to the line closest to the target, then to the smaller line.
    """
    lines = [line for line in reference_lines if line is not None]
    if not lines:
        return target_line
    counts = Counter(lines)
    anchor = target_line if target_line is not None else 0.0
    return min(counts, key=lambda line: (-counts[line], abs(line - anchor), line))


class EdgeEngine:
    """
    Prices selections against a de-vigged reference consensus.

    Args:
        reference_books: Book keys trusted to form the fair price
        min_reference_books: Evidence floor for forming a consensus
        edge_threshold_pct: EV% above which a selection has an edge
        kelly_multiplier: Fraction of full Kelly used for the stake
        max_stake: Ceiling on the stake as a fraction of bankroll
    """

    def __init__(
        self,
        reference_books: Sequence[str],
        min_reference_books: int = 2,
        edge_threshold_pct: float = 1.0,
        kelly_multiplier: float = KELLY_MULTIPLIER,
        max_stake: float = KELLY_MAX_STAKE,
    ):
        if min_reference_books < 1:
            raise ValueError("min_reference_books must be >= 1")
        self.reference_books = frozenset(reference_books)
        self.min_reference_books = min_reference_books
        self.edge_threshold_pct = edge_threshold_pct
        self.kelly_multiplier = kelly_multiplier
        self.max_stake = max_stake

    @classmethod
    def from_settings(cls, settings) -> "EdgeEngine":
        return cls(
            reference_books=settings.SHARP_BOOK_KEYS,
            min_reference_books=settings.MIN_REFERENCE_BOOKS,
            edge_threshold_pct=settings.EDGE_THRESHOLD_PCT,
            kelly_multiplier=settings.KELLY_MULTIPLIER,
            max_stake=settings.KELLY_MAX_STAKE,
        )

    def stake(self, probability: float, price: int) -> Tuple[float, float]:
        """Full Kelly fraction and the recommended stake in percent of bankroll."""
        full = kelly_fraction(probability, price)
        return full, _clamp(full * self.kelly_multiplier, 0.0, self.max_stake) * 100.0

    def analyze(self, selection: Selection, quotes: Sequence[SideQuote]) -> EdgeAnalysis:
        available = sorted({q.book_key for q in quotes})

        target = next(
            (q for q in quotes if q.book_key == selection.target_book and q.line == selection.line),
            None,
        )
        if target is None:
            return InsufficientMarketData(
                selection.selection_id,
                f"{selection.target_book} has no quote for {selection.label}",
                available,
            )

        references: Dict[Tuple[str, Optional[float]], SideQuote] = {}
        for q in sorted(quotes, key=lambda q: q.is_alternate):
            if q.book_key in self.reference_books and q.book_key != target.book_key and q.opposite_price is not None:
                references.setdefault((q.book_key, q.line), q)

        # Consensus is read off main lines; alternates only count when no book posts a main line
        main_lines = [line for (_, line), q in references.items() if not q.is_alternate]
        c_line = consensus_line(main_lines or [line for (_, line) in references], target.line)

        at_line = _quotes_at(references, target.line)
        line_adjusted = False
        if len(at_line) < self.min_reference_books and selection.adjustable and c_line != target.line:
            at_line = _quotes_at(references, c_line)
            line_adjusted = True
        if len(at_line) < self.min_reference_books:
            return InsufficientMarketData(
                selection.selection_id,
                f"need {self.min_reference_books} reference books at line {target.line}, found {len(at_line)}",
                available,
            )

        fair_probs = [remove_vig(q.price, q.opposite_price)[0] for q in at_line]
        base_fair = weighted_mean(fair_probs, [book_weight(q.book_key) for q in at_line])
        fair = base_fair
        if line_adjusted:
            fair = adjust_probability(
                base_fair, target.line - c_line, selection.line_direction, selection.adjustment_rate
            )

        ev_pct = expected_value_pct(fair, target.price)
        has_edge = ev_pct > self.edge_threshold_pct
        agreement = max(0.0, 1.0 - std_dev(fair_probs) * AGREEMENT_SPREAD_FACTOR)
        distance = abs(target.line - c_line) if target.line is not None and c_line is not None else 0.0

        same_line = [q for q in quotes if q.line == target.line]
        best = min(same_line, key=lambda q: (-payout_per_unit(q.price), q.book_key))

        score = recommendation_score(ev_pct, agreement, len(at_line))
        if line_adjusted:
            score = round(_clamp(score - SCORE_ADJUSTED_LINE_PENALTY * distance, 0.0, 100.0), 1)
        reference_keys = tuple(q.book_key for q in at_line)
        full_kelly, stake_pct = self.stake(fair, target.price)

        return AnalysisResult(
            selection_id=selection.selection_id,
            selection=selection.label,
            market=selection.market,
            target_book=target.book_key,
            target_sportsbook=target.sportsbook,
            target_price=target.price,
            line=target.line,
            hit_probability=fair,
            fair_odds=probability_to_american(fair) if 0.0 < fair < 1.0 else 0,
            ev_percentage=ev_pct,
            has_edge=has_edge,
            best_book=best.book_key,
            best_price=best.price,
            recommendation_score=score,
            consensus_line=c_line,
            line_distance=distance,
            agreement=agreement,
            reference_books=reference_keys,
            reasoning=_reasoning(
                target, fair, ev_pct, has_edge, reference_keys, self.edge_threshold_pct,
                c_line if line_adjusted else None,
            ),
            line_adjusted=line_adjusted,
            probability_adjustment=fair - base_fair,
            kelly_fraction=full_kelly,
            stake_pct=stake_pct,
        )


def _quotes_at(references: Dict[Tuple[str, Optional[float]], SideQuote], line: Optional[float]) -> List[SideQuote]:
    return sorted((q for (_, ref_line), q in references.items() if ref_line == line), key=lambda q: q.book_key)


def _reasoning(
    target: SideQuote,
    fair: float,
    ev_pct: float,
    has_edge: bool,
    reference_keys: Sequence[str],
    threshold: float,
    adjusted_from: Optional[float] = None,
) -> str:
    verdict = "edge" if has_edge else "no edge"
    source = f"{len(reference_keys)} reference books ({', '.join(reference_keys)})"
    if adjusted_from is not None:
        source += f" at consensus line {adjusted_from:g}, adjusted to {target.line:g}"
    return (
        f"{target.sportsbook} {target.price:+d} vs no-vig fair {fair:.1%} from {source}: "
        f"EV {ev_pct:+.2f}% ({verdict}, threshold {threshold:.1f}%)"
    )
