"""
The Odds API client.

Endpoints used:
- GET /sports/{sport_key}/odds                      game lines for all events
- GET /sports/{sport_key}/events/{event_id}/odds    alternates and player props

Every request has a timeout, is retried with exponential backoff on
transport errors, 429 and 5xx (honouring Retry-After), and is guarded by
the odds_api circuit breaker.

Quota Tracking: response headers x-requests-remaining, x-requests-used
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from oddsedge.core.errors import RetryableUpstreamError, UpstreamUnavailableError
from oddsedge.core.logging import get_logger
from oddsedge.core.metrics import (
    record_odds_api_request_failure,
    record_odds_api_request_success,
    update_odds_api_quota,
)
from oddsedge.services.core.circuit_breaker import (
    CircuitBreakerError,
    ensure_available,
    guard_outcome,
    odds_api_breaker,
)

logger = get_logger(__name__)

THE_ODDS_API_BASE = "https://api.the-odds-api.com/v4"

GAME_MARKETS = ("h2h", "spreads", "totals")
ALTERNATE_MARKETS = ("alternate_spreads", "alternate_totals")

MAX_RETRY_WAIT_SECONDS = 30


class OddsApiService:
    """
    Async client for The Odds API.

    Use as an async context manager or call ``close()`` when done.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = THE_ODDS_API_BASE,
        regions: str = "us,us2,eu",
        timeout: float = 15.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        monthly_quota: int = 20000,
        breaker=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: The Odds API key
            base_url: API root (override in tests)
            regions: Comma-separated bookmaker regions
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per request including the first
            backoff_seconds: Base delay of the exponential backoff
            monthly_quota: Requests included in the billing period
            breaker: Circuit breaker; defaults to the shared odds_api breaker
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.regions = regions
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.monthly_quota = monthly_quota
        self.breaker = breaker if breaker is not None else odds_api_breaker
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        self._requests_remaining: Optional[int] = None
        self._requests_used: Optional[int] = None
        self._quota_last_updated: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings) -> "OddsApiService":
        return cls(
            api_key=settings.THE_ODDS_API_KEY,
            base_url=settings.ODDS_API_BASE_URL,
            regions=settings.ODDS_API_REGIONS,
            timeout=settings.ODDS_API_TIMEOUT,
            max_attempts=settings.ODDS_API_MAX_ATTEMPTS,
            backoff_seconds=settings.ODDS_API_BACKOFF_SECONDS,
            monthly_quota=settings.ODDS_API_MONTHLY_QUOTA,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers={"Accept": "application/json", "X-Application": "oddsedge"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OddsApiService":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # Quota tracking

    def _update_quota_from_headers(self, response: httpx.Response):
        remaining = response.headers.get("x-requests-remaining")
        used = response.headers.get("x-requests-used")
        try:
            if remaining:
                self._requests_remaining = int(float(remaining))
            if used:
                self._requests_used = int(float(used))
        except ValueError as e:
            logger.warning(f"Failed to parse quota headers: {e}")
            return

        if remaining is None and used is None:
            return
        self._quota_last_updated = datetime.now()

        if self._requests_remaining is not None:
            if self._requests_remaining < self.monthly_quota * 0.05:
                logger.error(f"Odds API quota critically low: {self._requests_remaining} requests remaining")
            elif self._requests_remaining < self.monthly_quota * 0.2:
                logger.warning(f"Odds API quota running low: {self._requests_remaining} requests remaining")

        if self._requests_remaining is not None and self._requests_used is not None:
            update_odds_api_quota(
                remaining=self._requests_remaining,
                used=self._requests_used,
                monthly_quota=self.monthly_quota,
            )

    def get_quota_status(self) -> Dict:
        return {
            "requests_remaining": self._requests_remaining,
            "requests_used": self._requests_used,
            "last_updated": self._quota_last_updated.isoformat() if self._quota_last_updated else None,
            "monthly_quota": self.monthly_quota,
        }

    # Request plumbing

    def _retry_wait(self):
        backoff = wait_exponential(multiplier=self.backoff_seconds, exp_base=3, max=MAX_RETRY_WAIT_SECONDS)

        def _wait(retry_state) -> float:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            if isinstance(error, RetryableUpstreamError) and error.retry_after > 0:
                return min(error.retry_after, MAX_RETRY_WAIT_SECONDS)
            return backoff(retry_state)

        return _wait

    async def _request_once(self, path: str, params: Dict[str, Any], allow_not_found: bool) -> Any:
        ensure_available(self.breaker)
        client = await self._get_client()
        url = f"{self.base_url}{path}"

        try:
            response = await client.get(url, params={"apiKey": self.api_key, **params})
        except httpx.HTTPError as e:
            record_odds_api_request_failure(type(e).__name__)
            guard_outcome(self.breaker, RetryableUpstreamError(f"{path}: {type(e).__name__}: {e}"))

        self._update_quota_from_headers(response)
        status = response.status_code

        if status == 429 or 500 <= status < 600:
            record_odds_api_request_failure(f"http_{status}")
            guard_outcome(
                self.breaker,
                RetryableUpstreamError(
                    f"{path}: HTTP {status}",
                    status_code=status,
                    retry_after=_parse_retry_after(response.headers.get("retry-after")),
                ),
            )

        if status == 404 and allow_not_found:
            guard_outcome(self.breaker)
            return None

        if status >= 400:
            record_odds_api_request_failure(f"http_{status}")
            guard_outcome(self.breaker, UpstreamUnavailableError(f"{path}: HTTP {status}", status_code=status))

        guard_outcome(self.breaker)
        record_odds_api_request_success()
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(f"{path}: invalid JSON body") from e

    async def _get_json(self, path: str, params: Dict[str, Any], allow_not_found: bool = False) -> Any:
        """GET ``path`` with retries; raises UpstreamUnavailableError on final failure."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self._retry_wait(),
                retry=retry_if_exception_type(RetryableUpstreamError),
                reraise=True,
            ):
                with attempt:
                    return await self._request_once(path, params, allow_not_found)
        except CircuitBreakerError as e:
            raise UpstreamUnavailableError(f"{path}: odds feed circuit open") from e

    # Public API

    async def fetch_odds(self, sport_key: str, markets: Sequence[str] = GAME_MARKETS) -> List[Dict]:
        """
        Fetch upcoming events with game-line markets for every book.

        Returns:
            Raw event dicts (id, commence_time, home_team, away_team, bookmakers)
        """
        data = await self._get_json(
            f"/sports/{sport_key}/odds",
            {"regions": self.regions, "markets": ",".join(markets), "oddsFormat": "american"},
        )
        events = data or []
        logger.info(f"Fetched {len(events)} {sport_key} events")
        return events

    async def fetch_event_odds(self, sport_key: str, event_id: str, markets: Sequence[str]) -> Dict:
        """
        Fetch the given markets for a single event.

        A 404 (event no longer listed) yields an empty bookmaker list.
        """
        data = await self._get_json(
            f"/sports/{sport_key}/events/{event_id}/odds",
            {"regions": self.regions, "markets": ",".join(markets), "oddsFormat": "american"},
            allow_not_found=True,
        )
        if not data:
            return {"id": event_id, "bookmakers": []}
        return data

    async def fetch_alternate_odds(self, sport_key: str, event_id: str) -> Dict:
        return await self.fetch_event_odds(sport_key, event_id, ALTERNATE_MARKETS)

    async def fetch_player_props(self, sport_key: str, event_id: str, markets: Sequence[str]) -> Dict:
        return await self.fetch_event_odds(sport_key, event_id, markets)


def _parse_retry_after(value: Optional[str]) -> float:
    if not value:
        return 0.0
    try:
        return max(0.0, float(value))
    except ValueError:
        return 0.0
