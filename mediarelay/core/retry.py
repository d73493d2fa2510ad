"""
Bounded exponential-backoff retry for upstream calls.

Policy:
- ``max_attempts`` counts the first attempt (3 => 1 try + 2 retries).
- Delay before attempt k (0-indexed, k >= 1) is ``base_delay_ms * 2^(k-1)``.
- Failures carrying a status in ``non_retryable_status_codes`` (401, 403, 404
  by default) and RelayErrors not marked retryable are re-raised at once.
- After the last attempt the failure monitor receives an ``UpstreamFailure``
  report and the last underlying error is re-raised.

Delays suspend only the calling task.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from ..models.enums import ErrorKind
from .errors import RelayError, alert_name, status_code_of
from .monitor import FailureCallback, FailureReport, safe_report

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]

UPSTREAM_FAILURE = alert_name(ErrorKind.UPSTREAM_FAILURE)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    non_retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: frozenset({401, 403, 404})
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before 0-indexed *attempt* (0 for the first one)."""
        if attempt <= 0:
            return 0.0
        return self.base_delay_ms * (2 ** (attempt - 1)) / 1000.0

    def is_retryable(self, exc: BaseException) -> bool:
        if status_code_of(exc) in self.non_retryable_status_codes:
            return False
        if isinstance(exc, RelayError):
            return exc.retryable
        return True


async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    monitor: FailureCallback | None = None,
    sleep: SleepFn = asyncio.sleep,
    operation_name: str = "upstream call",
) -> T:
    """Run *operation* under *policy*, re-raising the last error on exhaustion."""
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_attempts):
        if attempt:
            wait = policy.delay_before(attempt)
            logger.warning(
                "%s failed (attempt %d/%d). Retrying in %.1fs...",
                operation_name,
                attempt,
                policy.max_attempts,
                wait,
            )
            await sleep(wait)

        try:
            return await operation()
        except Exception as exc:
            if not policy.is_retryable(exc):
                raise
            if attempt == policy.max_attempts - 1:
                logger.error(
                    "%s failed after %d attempts: %s",
                    operation_name,
                    policy.max_attempts,
                    exc,
                )
                safe_report(
                    monitor,
                    FailureReport(
                        kind=UPSTREAM_FAILURE,
                        message=str(exc) or type(exc).__name__,
                        attempts=policy.max_attempts,
                    ),
                )
                raise

    # Unreachable: the loop either returns or raises.
    raise RuntimeError(f"Retry loop exited unexpectedly for {operation_name}")
