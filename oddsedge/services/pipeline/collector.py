"""
Per-sport collector.

Fetches a sport's events with game lines, keeps the events inside the
collection window, upserts games and main-line quotes, then fans out per
event (bounded by the worker pool) for alternate lines and player props.

Failure semantics:
- the event-list fetch failing fails the whole sport (raised to the caller)
- a malformed event, or one event's alternate/prop fetch failing, is
  recorded in ``failed_events``
- one entity failing to persist is recorded in ``errors``; the rest continue
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from oddsedge.core.errors import PersistenceError
from oddsedge.core.logging import get_logger
from oddsedge.core.metrics import record_entities
from oddsedge.repositories.odds_repository import (
    ALT_ODDS_QUOTE_CONFLICT_FIELDS,
    ODDS_QUOTE_CONFLICT_FIELDS,
    PLAYER_PROP_CONFLICT_FIELDS,
    OddsRepository,
)
from oddsedge.services.core.bookmakers import normalize_book_keys
from oddsedge.services.core.odds_api_service import OddsApiService
from oddsedge.services.pipeline.concurrency import run_pool
from oddsedge.services.pipeline.normalizer import (
    BookLines,
    EventLines,
    parse_alternate_lines,
    parse_event,
    parse_player_props,
    prop_record,
    quote_record,
)
from oddsedge.services.pipeline.sports import has_alternate_lines, prop_markets, sport_key
from oddsedge.utils.timezone import utcnow

logger = get_logger(__name__)

FETCH_EVENT = "event"
FETCH_ALTERNATES = "alternates"
FETCH_PROPS = "props"


@dataclass
class CollectionWindow:
    """
    Time window of events to collect, relative to now.

    Lower bound is ``now + start_hours_ahead``. Upper bound is
    ``lower + window_hours`` when window_hours is positive, otherwise
    ``now + hours_ahead`` when given, otherwise unbounded.
    """
    start_hours_ahead: float = 0.0
    window_hours: Optional[float] = None
    hours_ahead: Optional[float] = None

    def bounds(self, now: datetime) -> Tuple[datetime, Optional[datetime]]:
        lower = now + timedelta(hours=max(0.0, self.start_hours_ahead or 0.0))
        if self.window_hours and self.window_hours > 0:
            return lower, lower + timedelta(hours=self.window_hours)
        if self.hours_ahead:
            return lower, now + timedelta(hours=self.hours_ahead)
        return lower, None

    def contains(self, commence_time: Optional[datetime], now: datetime) -> bool:
        # Events without a parseable start time are kept
        if commence_time is None:
            return True
        lower, upper = self.bounds(now)
        if commence_time < lower:
            return False
        return upper is None or commence_time < upper


@dataclass
class CollectionOptions:
    window: CollectionWindow = field(default_factory=CollectionWindow)
    book_keys: Optional[Sequence[str]] = None
    skip_props: bool = False
    skip_alternates: bool = False


@dataclass
class _EventTarget:
    event_id: str
    game_id: str
    home_team: str


class SportCollector:
    """Collects one sport's games, quotes and props into the repository."""

    def __init__(
        self,
        sport: str,
        odds_service: OddsApiService,
        repository: OddsRepository,
        default_book_keys: Sequence[str],
        concurrency: int = 3,
        event_timeout: Optional[float] = None,
        reference_book_keys: Sequence[str] = (),
    ):
        self.sport = sport.upper()
        self.sport_key = sport_key(self.sport)
        self.odds_service = odds_service
        self.repository = repository
        self.default_book_keys = list(default_book_keys)
        self.concurrency = concurrency
        self.event_timeout = event_timeout
        self.reference_book_keys = list(reference_book_keys)

    async def collect(self, options: Optional[CollectionOptions] = None) -> Dict[str, Any]:
        """
        Run one collection pass for the sport.

        Returns:
            Details dict: games, odds, props, events, failed_events, errors
        """
        options = options or CollectionOptions()
        # Reference books are always collected
        book_keys = normalize_book_keys(list(options.book_keys or self.default_book_keys) + self.reference_book_keys)
        details: Dict[str, Any] = {
            "games": 0,
            "odds": 0,
            "props": 0,
            "events": 0,
            "failed_events": [],
            "errors": [],
        }

        raw_events = await self.odds_service.fetch_odds(self.sport_key)
        now = utcnow()

        targets: List[_EventTarget] = []
        for index, raw in enumerate(raw_events):
            event_id = raw.get("id") if isinstance(raw, dict) else None
            try:
                event = parse_event(raw, book_keys)
                if not options.window.contains(event.commence_time, now):
                    continue
                details["events"] += 1

                game_id = self._store_event(event, details)
            except Exception as e:
                message = str(e) or type(e).__name__
                details["failed_events"].append({
                    "event_id": event_id or f"#{index}",
                    "kind": FETCH_EVENT,
                    "error": message,
                })
                logger.warning(f"{self.sport}: skipped malformed event {event_id or index}: {message}")
                continue
            if game_id:
                targets.append(_EventTarget(event.event_id, game_id, event.home_team))

        kinds = []
        if not options.skip_alternates and has_alternate_lines(self.sport):
            kinds.append(FETCH_ALTERNATES)
        if not options.skip_props:
            kinds.append(FETCH_PROPS)

        work = [(target, kind) for target in targets for kind in kinds]
        if work:
            outcomes = await run_pool(
                work,
                lambda item: self._fetch_event_extras(item[0], item[1], book_keys),
                size=self.concurrency,
                timeout=self.event_timeout,
            )
            for (target, kind), outcome in zip(work, outcomes):
                if outcome.ok:
                    self._store_extras(target, kind, outcome.value, details)
                else:
                    message = str(outcome.error) or type(outcome.error).__name__
                    details["failed_events"].append({"event_id": target.event_id, "kind": kind, "error": message})
                    logger.warning(f"{self.sport}: {kind} fetch failed for event {target.event_id}: {message}")

        record_entities(self.sport, "games", details["games"])
        record_entities(self.sport, "odds", details["odds"])
        record_entities(self.sport, "props", details["props"])
        logger.info(
            f"{self.sport}: {details['games']} games, {details['odds']} odds, {details['props']} props "
            f"({len(details['failed_events'])} failed fetches, {len(details['errors'])} write errors)"
        )
        return details

    async def _fetch_event_extras(self, target: _EventTarget, kind: str, book_keys: List[str]) -> Any:
        if kind == FETCH_ALTERNATES:
            raw = await self.odds_service.fetch_alternate_odds(self.sport_key, target.event_id)
            return parse_alternate_lines(raw, target.home_team, book_keys)
        raw = await self.odds_service.fetch_player_props(self.sport_key, target.event_id, prop_markets(self.sport))
        return parse_player_props(raw, book_keys)

    def _store_event(self, event: EventLines, details: Dict[str, Any]) -> Optional[str]:
        try:
            game = self.repository.upsert_game({
                "external_id": event.event_id,
                "sport": self.sport,
                "home_team": event.home_team,
                "away_team": event.away_team,
                "game_date": event.commence_time,
                "status": "scheduled",
            })
        except PersistenceError as e:
            details["errors"].append(f"game {event.event_id}: {e}")
            return None
        details["games"] += 1

        for book in event.books:
            if book.has_markets:
                self._store_lines(game.id, book, False, details)
        return game.id

    def _store_lines(self, game_id: str, book: BookLines, is_alternate: bool, details: Dict[str, Any]):
        conflict_fields = ALT_ODDS_QUOTE_CONFLICT_FIELDS if is_alternate else ODDS_QUOTE_CONFLICT_FIELDS
        for quote in book.quotes:
            try:
                self.repository.upsert_odds_quote(
                    quote_record(game_id, book.book_key, book.sportsbook, quote, is_alternate),
                    conflict_fields,
                )
                details["odds"] += 1
            except PersistenceError as e:
                details["errors"].append(f"{book.book_key} {quote.market} for game {game_id}: {e}")

    def _store_extras(self, target: _EventTarget, kind: str, parsed: Any, details: Dict[str, Any]):
        if kind == FETCH_ALTERNATES:
            for book in parsed:
                self._store_lines(target.game_id, book, True, details)
            return

        for prop in parsed:
            try:
                self.repository.upsert_player_prop(prop_record(target.game_id, prop), PLAYER_PROP_CONFLICT_FIELDS)
                details["props"] += 1
            except PersistenceError as e:
                details["errors"].append(f"prop {prop.player_name} {prop.prop_type} {prop.line}: {e}")
