"""Classified retry with exponential backoff and proxy rotation.

:class:`RetryPolicy` is the single resilience primitive every outbound
call goes through.  Only rate limiting (429) and server errors (5xx) are
retried; everything else propagates on the first failure.  Before each
retry the policy advances the :class:`~core.proxy_manager.ProxyRotator`
once and rebinds every registered proxy-bound connection to the new
proxy, then sleeps ``base * 2^(attempt-1) + U(0, jitter)`` ms.
"""

import asyncio
import logging
import random
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar

from core.proxy_manager import ProxyRotator, mask_proxy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorType(Enum):
    """Classification of call failures for retry decisions.

    Error Categories:
    - RATE_LIMIT: HTTP 429 (retryable)
    - SERVER_ERROR: HTTP 500-599 (retryable)
    - NETWORK: timeouts, refused connections, proxy failures; no status (terminal)
    - PERMANENT: any other status, including 4xx other than 429 (terminal)
    """
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    PERMANENT = "permanent"


RETRYABLE_ERRORS = frozenset({ErrorType.RATE_LIMIT, ErrorType.SERVER_ERROR})


class ProxyBound(Protocol):
    """Anything holding a connection that must follow proxy rotation."""

    def bind_proxy(self, proxy: Optional[str]) -> None:
        ...


def error_status(error: BaseException) -> Optional[int]:
    """Return the HTTP status carried by *error*, if any."""
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def classify_error(error: BaseException) -> ErrorType:
    """Map an exception onto an :class:`ErrorType`."""
    status = error_status(error)
    if status is None:
        return ErrorType.NETWORK
    if status == 429:
        return ErrorType.RATE_LIMIT
    if 500 <= status < 600:
        return ErrorType.SERVER_ERROR
    return ErrorType.PERMANENT


def is_retryable(error: BaseException) -> bool:
    return classify_error(error) in RETRYABLE_ERRORS


def backoff_delay(
    attempt: int, base_delay_ms: int, jitter_ms: int = 1000,
) -> float:
    """Backoff before retrying after a failed *attempt* (1-based).

    Returns:
        Seconds to wait, in
        ``[base * 2^(attempt-1), base * 2^(attempt-1) + jitter)`` ms.
    """
    delay_ms = base_delay_ms * (2 ** (attempt - 1))
    delay_ms += random.uniform(0, jitter_ms)
    return delay_ms / 1000


class RetryPolicy:
    """Run a fallible coroutine with bounded, classified retries.

    Args:
        proxy_rotator: Shared proxy cursor, advanced once per retry.
        max_attempts: Default attempt budget per :meth:`execute`.
        base_delay_ms: Default backoff base in milliseconds.
        jitter_ms: Upper bound of the uniform jitter in milliseconds.
        connections: Proxy-bound handles rebuilt on every rotation.
    """

    def __init__(
        self,
        proxy_rotator: ProxyRotator,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        jitter_ms: int = 1000,
        connections: Optional[List[ProxyBound]] = None,
    ) -> None:
        self.proxy_rotator = proxy_rotator
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.jitter_ms = jitter_ms
        self.connections: List[ProxyBound] = list(connections or [])

    def register(self, connection: ProxyBound) -> None:
        """Make *connection* follow proxy rotation on retry."""
        self.connections.append(connection)

    def rotate(self) -> Optional[str]:
        """Advance the rotator and rebind every registered connection.

        With an empty pool this is a no-op and returns ``None``.
        """
        if not self.proxy_rotator:
            return None
        proxy = self.proxy_rotator.next()
        for connection in self.connections:
            connection.bind_proxy(proxy)
        logger.info("🔁 Rotating proxy -> %s", mask_proxy(proxy))
        return proxy

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        label: str = "request",
    ) -> T:
        """Await ``operation()`` until it succeeds or a failure is final.

        Args:
            operation: Zero-argument callable returning a fresh awaitable
                per attempt.
            max_attempts: Attempt budget; defaults to the policy's.
            base_delay_ms: Backoff base; defaults to the policy's.
            label: Call name used in log lines.

        Returns:
            The operation's result.

        Raises:
            Exception: The first terminal failure, or the last retryable
                one once the budget is exhausted.
        """
        attempts = max_attempts or self.max_attempts
        base = self.base_delay_ms if base_delay_ms is None else base_delay_ms

        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as e:
                error_type = classify_error(e)
                if error_type not in RETRYABLE_ERRORS:
                    raise
                if attempt >= attempts:
                    logger.warning(
                        "❌ %s failed after %d attempts (%s)",
                        label, attempts, error_type.value,
                    )
                    raise

                delay = backoff_delay(attempt, base, self.jitter_ms)
                logger.warning(
                    "⚠️ %s: %s (HTTP %s). Retrying in %.1fs... (%d/%d)",
                    label, error_type.value, error_status(e),
                    delay, attempt, attempts,
                )
                self.rotate()
                await asyncio.sleep(delay)
                attempt += 1
