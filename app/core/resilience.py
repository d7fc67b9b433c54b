"""
Fault-tolerance helpers.

1. **Circuit Breaker** — after ``failure_threshold`` consecutive failures of
   a dependency, calls fail fast for ``recovery_timeout`` seconds; then a
   single trial call is let through (HALF_OPEN) and its outcome closes or
   re-opens the circuit. Used for database calls (``db_circuit_breaker``) and the
   email provider (``email_circuit_breaker``).

2. **Retry with Exponential Backoff** — used by the outbound delivery queue
   to retry notifications and emails before they are dead-lettered. Request
   handlers never retry: a failed provider or database call is surfaced to
   the caller immediately.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

import httpx
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    """Possible states of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(AppException):
    """Raised (as a 503) when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            status_code=503,
            message=(
                f"Circuit breaker '{name}' is OPEN — failing fast. "
                f"Retry after {retry_after:.1f}s."
            ),
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier used in logs and ``/health`` (``"database"``, ``"email"``).
    failure_threshold : int
        Consecutive failures before the circuit opens.
    recovery_timeout : float
        Seconds spent OPEN before a trial call is allowed.
    expected_exceptions : tuple
        Exception types that count as failures. Anything else passes through
        without touching the counters (e.g. an ``IntegrityError`` is the
        caller's fault, not the database's).
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        if self._state == CircuitState.OPEN:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit '%s' → HALF_OPEN after %.1fs", self.name, elapsed
                )
        return self._state

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(
                "Circuit '%s' → CLOSED (trial call succeeded after %d failures)",
                self.name,
                self._failure_count,
            )
        self._failure_count = 0
        self._success_count += 1
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "Circuit '%s' → OPEN (failure #%d reached threshold %d); "
                "failing fast for %.1fs",
                self.name,
                self._failure_count,
                self.failure_threshold,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure #%d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """
        Await ``func(*args, **kwargs)`` through the breaker.

        Raises :class:`CircuitBreakerError` while the circuit is OPEN.
        """
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (
                time.monotonic() - self._last_failure_time
            )
            raise CircuitBreakerError(self.name, max(retry_after, 0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._record_failure()
            raise
        self._record_success()
        return result

    def get_status(self) -> dict:
        """Snapshot for the ``/health`` endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


TRANSIENT_DB_ERRORS: Tuple[Type[BaseException], ...] = (
    OperationalError,
    ConnectionError,
    OSError,
    TimeoutError,
)

TRANSIENT_HTTP_ERRORS: Tuple[Type[BaseException], ...] = (
    httpx.TransportError,
    httpx.HTTPStatusError,
    TimeoutError,
)

db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_DB_ERRORS,
)

email_circuit_breaker = CircuitBreaker(
    name="email",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_HTTP_ERRORS,
)


# ────────────────────────────────────────────────────────────────────────────
# Retry with Exponential Backoff
# ────────────────────────────────────────────────────────────────────────────


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """
    Decorator: retry an async function with exponential backoff.

    ``max_retries`` counts retries after the first attempt. The delay doubles
    each time, is capped at ``max_delay`` and, with ``jitter``, gets up to 50%
    random padding. Exceptions outside ``retryable_exceptions`` propagate
    immediately; when retries are exhausted the last exception is re-raised.

    Example::

        send = retry_with_backoff(max_retries=3)(email_client.send)
        await send(to, subject, html)
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception: Optional[BaseException] = None
            delay = base_delay
            name = getattr(func, "__qualname__", repr(func))

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    last_exception = exc
                    if attempt < max_retries:
                        actual_delay = min(delay, max_delay)
                        if jitter:
                            actual_delay += random.uniform(0, actual_delay * 0.5)
                        logger.warning(
                            "Retry %d/%d for %s after %.2fs — %s: %s",
                            attempt + 1,
                            max_retries,
                            name,
                            actual_delay,
                            type(exc).__name__,
                            exc,
                            extra={"attempt": attempt + 1},
                        )
                        await asyncio.sleep(actual_delay)
                        delay *= 2
                    else:
                        logger.error(
                            "All %d retries exhausted for %s — %s: %s",
                            max_retries,
                            name,
                            type(exc).__name__,
                            exc,
                        )

            raise last_exception  # type: ignore[misc]

        return wrapper

    return decorator
