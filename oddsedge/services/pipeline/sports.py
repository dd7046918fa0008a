"""
Sport registry for collection: upstream sport keys and prop market lists.
"""
from typing import Dict, List, Tuple

from oddsedge.core.errors import UnknownSportError

SPORT_KEYS: Dict[str, str] = {
    "NFL": "americanfootball_nfl",
    "NBA": "basketball_nba",
    "MLB": "baseball_mlb",
    "NCAAF": "americanfootball_ncaaf",
}

FOOTBALL_PROP_MARKETS: Tuple[str, ...] = (
    "player_pass_yds",
    "player_pass_tds",
    "player_pass_completions",
    "player_pass_attempts",
    "player_pass_interceptions",
    "player_rush_yds",
    "player_rush_attempts",
    "player_receptions",
    "player_reception_yds",
    "player_rush_tds",
    "player_receiving_tds",
    "player_longest_reception",
    "player_longest_rush",
    "player_anytime_td",
    "player_pass_yds_alternate",
    "player_pass_tds_alternate",
    "player_pass_completions_alternate",
    "player_pass_attempts_alternate",
    "player_pass_interceptions_alternate",
    "player_rush_yds_alternate",
    "player_rush_attempts_alternate",
    "player_receptions_alternate",
    "player_reception_yds_alternate",
)

BASKETBALL_PROP_MARKETS: Tuple[str, ...] = (
    "player_points",
    "player_rebounds",
    "player_assists",
    "player_threes",
    "player_blocks",
    "player_steals",
    "player_turnovers",
    "player_points_rebounds_assists",
    "player_points_rebounds",
    "player_points_assists",
    "player_points_alternate",
    "player_rebounds_alternate",
    "player_assists_alternate",
    "player_threes_alternate",
    "player_blocks_alternate",
    "player_steals_alternate",
    "player_turnovers_alternate",
    "player_points_rebounds_assists_alternate",
    "player_points_rebounds_alternate",
    "player_points_assists_alternate",
)

BASEBALL_PROP_MARKETS: Tuple[str, ...] = (
    "batter_home_runs",
    "batter_hits",
    "batter_total_bases",
    "batter_rbis",
    "batter_runs_scored",
    "batter_strikeouts",
    "pitcher_strikeouts",
    "pitcher_hits_allowed",
    "pitcher_earned_runs",
    "pitcher_outs_recorded",
    "pitcher_walks",
    "batter_home_runs_alternate",
    "batter_hits_alternate",
    "batter_total_bases_alternate",
    "batter_rbis_alternate",
    "batter_runs_scored_alternate",
    "batter_strikeouts_alternate",
    "pitcher_strikeouts_alternate",
    "pitcher_hits_allowed_alternate",
    "pitcher_earned_runs_alternate",
    "pitcher_outs_recorded_alternate",
    "pitcher_walks_alternate",
)

_PROP_MARKETS_BY_KEY: Dict[str, Tuple[str, ...]] = {
    "americanfootball_nfl": FOOTBALL_PROP_MARKETS,
    "americanfootball_ncaaf": FOOTBALL_PROP_MARKETS,
    "basketball_nba": BASKETBALL_PROP_MARKETS,
    "baseball_mlb": BASEBALL_PROP_MARKETS,
}

# The feed offers no alternate game lines for baseball
NO_ALTERNATE_LINES = frozenset({"MLB"})


def sport_key(sport: str) -> str:
    """Upstream key for a sport code; raises UnknownSportError."""
    try:
        return SPORT_KEYS[sport.upper()]
    except KeyError:
        raise UnknownSportError(f"Unknown sport: {sport}. Expected one of {', '.join(SPORT_KEYS)}")


def prop_markets(sport: str) -> List[str]:
    return list(_PROP_MARKETS_BY_KEY.get(sport_key(sport), ()))


def has_alternate_lines(sport: str) -> bool:
    return sport.upper() not in NO_ALTERNATE_LINES
