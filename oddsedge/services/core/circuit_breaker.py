"""
Circuit breaker for the upstream odds feed.

Uses pybreaker. States:
- CLOSED: requests pass through normally
- OPEN: requests fail immediately (after fail_max consecutive failures)
- HALF_OPEN: one request is allowed through to test recovery

pybreaker only tracks synchronous calls, so async callers perform the
request themselves and then report its outcome through ``guard_outcome``.
"""
from typing import Optional

from pybreaker import STATE_OPEN, CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

from oddsedge.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FAIL_MAX = 5
DEFAULT_RESET_TIMEOUT = 60  # seconds


class LoggingListener(CircuitBreakerListener):
    """Log breaker state transitions."""

    def state_change(self, cb, old_state, new_state):
        old_name = old_state.name if old_state else None
        logger.warning(f"Circuit breaker '{cb.name}' changed {old_name} -> {new_state.name}")


def create_breaker(
    name: str,
    fail_max: int = DEFAULT_FAIL_MAX,
    reset_timeout: int = DEFAULT_RESET_TIMEOUT,
) -> CircuitBreaker:
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=name,
        listeners=[LoggingListener()],
    )


odds_api_breaker = create_breaker("odds_api")


def _reraise(error: Optional[BaseException]) -> None:
    if error is not None:
        raise error


def guard_outcome(breaker: CircuitBreaker, error: Optional[BaseException] = None) -> None:
    """
    Report the outcome of an already-performed call to ``breaker``.

    Passing an error counts a failure and re-raises it (or raises
    CircuitBreakerError if this failure opened the circuit). Passing None
    counts a success. While the circuit is open, CircuitBreakerError is
    raised regardless of the outcome.
    """
    breaker.call(_reraise, error)


def ensure_available(breaker: CircuitBreaker) -> None:
    """
    Raise CircuitBreakerError while the circuit is open and its reset timeout
    has not elapsed, before any request is sent.

    Once the timeout has elapsed the breaker is left half-open, so the next
    reported outcome decides whether it closes or re-opens.
    """
    if breaker.current_state == STATE_OPEN:
        breaker.call(_reraise, None)
        breaker.half_open()


def get_breaker_state(breaker: CircuitBreaker) -> str:
    return breaker.current_state


__all__ = [
    "CircuitBreakerError",
    "create_breaker",
    "ensure_available",
    "get_breaker_state",
    "guard_outcome",
    "odds_api_breaker",
]
