"""
Sportsbook registry: display names and the relative weight of reference
("sharp") books when building fair-probability consensus. Which books are
collected and which act as references is configured in Settings.
"""
from typing import Dict, Iterable, List

BOOKMAKER_NAMES: Dict[str, str] = {
    "draftkings": "DraftKings",
    "fanduel": "FanDuel",
    "betmgm": "BetMGM",
    "caesars": "Caesars",
    "betrivers": "BetRivers",
    "pointsbetus": "PointsBet",
    "espnbet": "ESPN BET",
    "wynnbet": "WynnBet",
    "bovada": "Bovada",
    "mybookieag": "MyBookie",
    "betus": "BetUS",
    "lowvig": "LowVig",
    "betonlineag": "BetOnline",
    "superbook": "SuperBook",
    "unibet_us": "Unibet",
    "pinnacle": "Pinnacle",
    "bookmaker": "Bookmaker",
    "circa": "Circa",
    "bet365": "bet365",
    "fanatics": "Fanatics",
}

# Relative trust of reference books when averaging fair probabilities
BOOK_WEIGHTS: Dict[str, float] = {
    "fanduel": 1.0,
    "betonlineag": 0.9,
    "lowvig": 0.85,
    "draftkings": 0.75,
}
DEFAULT_BOOK_WEIGHT = 0.5


def display_name(book_key: str, fallback: str = "") -> str:
    """Human-readable book name; falls back to the feed's title, then the key."""
    return BOOKMAKER_NAMES.get(book_key) or fallback or book_key


def book_weight(book_key: str) -> float:
    return BOOK_WEIGHTS.get(book_key, DEFAULT_BOOK_WEIGHT)


def normalize_book_keys(keys: Iterable[str]) -> List[str]:
    """Lower-case, strip and de-duplicate book keys, preserving order."""
    seen: List[str] = []
    for key in keys:
        k = key.strip().lower()
        if k and k not in seen:
            seen.append(k)
    return seen
