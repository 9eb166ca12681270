"""Retry execution for remote vendor calls.

Wraps one logical remote call (a document batch update, a list query, an
upload) with bounded exponential backoff. Failures are classified by their
HTTP status code against a fixed set of transient codes; retrying is opt-in
per destination.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, FrozenSet, Optional, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from .errors import RETRIABLE_STATUS_CODES
from .sanitize import sanitize_error

T = TypeVar("T")

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration for one destination.

    Attributes:
        enabled: Retry enable flag; when False every call gets one attempt
        max_retries: Retry ceiling; a call gets at most ``max_retries + 1`` attempts
        base_delay: Delay before retry ``n`` (0-based) is ``base_delay ** n`` seconds
        retriable_codes: Status codes treated as transient
    """

    enabled: bool = False
    max_retries: int = 5
    base_delay: float = 3.0
    retriable_codes: FrozenSet[int] = RETRIABLE_STATUS_CODES

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1 if self.enabled else 1

    def delay_for_attempt(self, attempt: int) -> int:
        """Whole seconds to suspend after the failed 0-based ``attempt``."""
        return int(self.base_delay ** attempt)


def status_code_of(error: BaseException) -> Optional[int]:
    """Extract an HTTP status code from an error, if it carries one."""
    status = getattr(error, "status_code", None)
    if status is None and isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
    if status is None:
        code = getattr(error, "code", None)
        if isinstance(code, int):
            status = code
    return status


class RetryExecutor:
    """Execute remote calls under a :class:`RetryPolicy`.

    The attempt counter lives in tenacity's per-call retry state, so it
    starts at zero for every logical call and is never shared between calls.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        """Initialize the executor.

        Args:
            policy: Retry policy for this destination
            sleep: Suspension coroutine, ``asyncio.sleep`` unless overridden
            logger: Structured logger instance
        """
        self.policy = policy
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or structlog.get_logger()

    def is_retriable(self, error: BaseException) -> bool:
        return status_code_of(error) in self.policy.retriable_codes

    async def execute(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        label: str = "remote call",
        webhook_id: Optional[str] = None,
    ) -> T:
        """Run ``call`` until it succeeds, fails permanently, or exhausts retries.

        Args:
            call: Zero-argument coroutine function performing one remote call
            label: Operation name used in log lines
            webhook_id: Correlation id bound to log lines

        Returns:
            Whatever ``call`` returns on its successful attempt

        Raises:
            The last error raised by ``call``, sanitized but otherwise unchanged
        """
        log = self.logger.bind(operation=label, webhook_id=webhook_id)

        async def attempt() -> T:
            try:
                return await call()
            except Exception as e:
                sanitize_error(e)
                log.debug(
                    "Remote call failed",
                    error=str(e),
                    status_code=status_code_of(e),
                )
                raise

        def before_sleep(retry_state: RetryCallState) -> None:
            log.warning(
                f"Queueing retry for {label}",
                attempt=retry_state.attempt_number,
                delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
                status_code=status_code_of(retry_state.outcome.exception()),
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception(self.is_retriable),
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=before_sleep,
            reraise=True,
        )
        return await retrying(attempt)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.policy.delay_for_attempt(retry_state.attempt_number - 1)
