"""
Usage statistics.

``StatsCache`` holds the counters in memory and updates them synchronously;
every update schedules a background save through ``StatsStore``, which
speaks GET/PUT to a remote JSON document. At most one save is in flight;
updates made meanwhile are folded into one follow-up save of the latest
state. Store failures are logged, never raised.
"""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .monitor import spawn_background

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5


class UserStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    history: list[str] = Field(default_factory=list)
    total_downloads: int = Field(0, alias="totalDownloads")


class StatsState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    users: dict[str, UserStats] = Field(default_factory=dict)
    total_downloads: int = Field(0, alias="totalDownloads")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class StatsStore:
    """Remote JSON document store. An empty URL disables persistence."""

    def __init__(
        self,
        url: str = "",
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout, headers=self._headers, transport=self._transport
        )

    async def load(self) -> StatsState:
        if not self.enabled:
            return StatsState()
        try:
            async with self._client() as client:
                response = await client.get(self._url)
                response.raise_for_status()
                return StatsState.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to load stats from %s: %s", self._url, e)
            return StatsState()

    async def save(self, state: StatsState):
        if not self.enabled:
            return
        try:
            async with self._client() as client:
                response = await client.put(self._url, json=state.to_document())
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to save stats to %s: %s", self._url, e)


class StatsCache:
    def __init__(self, store: StatsStore | None = None, state: StatsState | None = None):
        self._store = store or StatsStore()
        self._state = state or StatsState()
        self._dirty = False
        self._flushing = False

    @property
    def state(self) -> StatsState:
        return self._state

    async def warm(self):
        """Replace the in-memory state with the stored document."""
        self._state = await self._store.load()
        logger.info(
            "Loaded stats: %d users, %d downloads",
            len(self._state.users),
            self._state.total_downloads,
        )

    def record(self, user_id: str | int, link: str) -> UserStats:
        """Count one download for *user_id* and persist in the background."""
        user = self._state.users.setdefault(str(user_id), UserStats())
        user.total_downloads += 1
        user.history = ([link] + [h for h in user.history if h != link])[:HISTORY_LIMIT]
        self._state.total_downloads += 1

        if self._store.enabled:
            self._dirty = True
            if not self._flushing:
                self._flushing = spawn_background(self._flush()) is not None
        return user

    async def _flush(self):
        try:
            while self._dirty:
                self._dirty = False
                await self._store.save(self._state.model_copy(deep=True))
        finally:
            self._flushing = False

    def summary(self) -> dict:
        return {
            "users": len(self._state.users),
            "total_downloads": self._state.total_downloads,
        }
