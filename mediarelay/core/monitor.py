"""
Failure monitor: counts upstream failures and alerts the operator.

Counters are updated synchronously; the optional webhook alert is dispatched
as a background task so reporting never blocks or fails the caller.
"""

import asyncio
import inspect
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailureReport:
    kind: str
    message: str
    attempts: int = 1


FailureCallback = Callable[[FailureReport], Any]

# Strong references to in-flight fire-and-forget tasks.
_background_tasks: set[asyncio.Task] = set()


def spawn_background(coro) -> asyncio.Task | None:
    """Schedule *coro* without awaiting it. Returns None outside an event loop."""
    try:
        task = asyncio.get_running_loop().create_task(coro)
    except RuntimeError:
        coro.close()
        logger.debug("No running event loop; dropping background task")
        return None
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def safe_report(callback: FailureCallback | None, report: FailureReport):
    """
    Invoke a failure callback under the no-throw contract.

    Exceptions are logged; coroutine results are scheduled, never awaited.
    """
    if callback is None:
        return
    try:
        result = callback(report)
        if inspect.isawaitable(result):
            spawn_background(_await_logged(result))
    except Exception as e:
        logger.error("Failure monitor raised while reporting %s: %s", report.kind, e)


async def _await_logged(awaitable):
    try:
        await awaitable
    except Exception as e:
        logger.error("Async failure monitor callback failed: %s", e)


class FailureMonitor:
    """
    In-memory failure counters with an optional webhook alert.

    Instances are callable so they can be injected wherever a plain
    ``FailureCallback`` is expected.
    """

    def __init__(self, webhook_url: str = "", timeout: float = 10.0):
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._counts: Counter[str] = Counter()

    def __call__(self, report: FailureReport):
        self.report(report)

    def report(self, report: FailureReport):
        self._counts[report.kind] += 1
        logger.error(
            "Upstream failure [%s] after %d attempt(s): %s",
            report.kind,
            report.attempts,
            report.message,
        )
        if self._webhook_url:
            spawn_background(self._send_alert(report))

    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    async def _send_alert(self, report: FailureReport):
        payload = {**asdict(report), "count": self._counts[report.kind]}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to deliver failure alert: %s", e)
