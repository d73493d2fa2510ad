"""Tests for the usage statistics cache and its remote store."""

import asyncio
import json

import httpx

from mediarelay.core.stats import HISTORY_LIMIT, StatsCache, StatsState, StatsStore

STORE_URL = "https://store.example/stats.json"

DOCUMENT = {
    "users": {"42": {"history": ["https://www.instagram.com/p/A/"], "totalDownloads": 3}},
    "totalDownloads": 10,
}


class TestStatsCache:
    def test_record_counts_and_history(self):
        cache = StatsCache()
        for n in range(7):
            cache.record(42, f"https://www.instagram.com/p/{n}/")
        user = cache.state.users["42"]
        assert user.total_downloads == 7
        assert len(user.history) == HISTORY_LIMIT
        assert user.history[0] == "https://www.instagram.com/p/6/"
        assert cache.summary() == {"users": 1, "total_downloads": 7}

    def test_repeat_link_moves_to_front(self):
        cache = StatsCache()
        cache.record("u", "a")
        cache.record("u", "b")
        cache.record("u", "a")
        assert cache.state.users["u"].history == ["a", "b"]

    def test_document_uses_aliases(self):
        state = StatsState.model_validate(DOCUMENT)
        assert state.total_downloads == 10
        assert state.users["42"].total_downloads == 3
        assert state.to_document() == DOCUMENT


class TestStatsStore:
    def test_disabled_store_loads_empty_state(self):
        state = asyncio.run(StatsStore().load())
        assert state.users == {}

    def test_warm_loads_remote_document(self):
        def handler(request):
            assert request.method == "GET"
            return httpx.Response(200, json=DOCUMENT)

        cache = StatsCache(StatsStore(STORE_URL, transport=httpx.MockTransport(handler)))
        asyncio.run(cache.warm())
        assert cache.summary() == {"users": 1, "total_downloads": 10}

    def test_load_failure_yields_empty_state(self):
        store = StatsStore(STORE_URL, transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        assert asyncio.run(store.load()).total_downloads == 0

    def test_invalid_document_yields_empty_state(self):
        store = StatsStore(
            STORE_URL, transport=httpx.MockTransport(lambda r: httpx.Response(200, text="oops"))
        )
        assert asyncio.run(store.load()).users == {}

    def test_save_failure_is_swallowed(self):
        store = StatsStore(STORE_URL, transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        asyncio.run(store.save(StatsState()))

    def test_record_saves_in_background(self):
        saved = []

        def handler(request):
            saved.append((request.method, json.loads(request.content)))
            return httpx.Response(200)

        async def run():
            cache = StatsCache(StatsStore(STORE_URL, transport=httpx.MockTransport(handler)))
            cache.record(7, "https://x.com/a/status/1")
            assert saved == []
            pending = asyncio.all_tasks() - {asyncio.current_task()}
            await asyncio.gather(*pending)

        asyncio.run(run())
        [(method, body)] = saved
        assert method == "PUT"
        assert body["totalDownloads"] == 1
        assert body["users"]["7"]["history"] == ["https://x.com/a/status/1"]

    def test_quick_records_fold_into_one_save(self):
        saved = []

        def handler(request):
            saved.append(json.loads(request.content))
            return httpx.Response(200)

        async def run():
            cache = StatsCache(StatsStore(STORE_URL, transport=httpx.MockTransport(handler)))
            cache.record(7, "a")
            cache.record(8, "b")
            pending = asyncio.all_tasks() - {asyncio.current_task()}
            await asyncio.gather(*pending)

        asyncio.run(run())
        assert [body["totalDownloads"] for body in saved] == [2]

    def test_record_during_save_is_saved_after_it(self):
        saved = []
        release = None

        async def handler(request):
            await release.wait()
            saved.append(json.loads(request.content))
            return httpx.Response(200)

        async def run():
            nonlocal release
            release = asyncio.Event()
            cache = StatsCache(StatsStore(STORE_URL, transport=httpx.MockTransport(handler)))
            cache.record(7, "a")
            [flush] = asyncio.all_tasks() - {asyncio.current_task()}
            await asyncio.sleep(0.01)
            # first save is blocked in the handler
            cache.record(7, "b")
            cache.record(7, "c")
            assert asyncio.all_tasks() - {asyncio.current_task()} == {flush}
            release.set()
            await flush

        asyncio.run(run())
        assert [body["totalDownloads"] for body in saved] == [1, 3]
        assert saved[-1]["users"]["7"]["history"] == ["c", "b", "a"]

    def test_record_outside_event_loop_does_not_block_later_saves(self):
        saved = []

        def handler(request):
            saved.append(json.loads(request.content))
            return httpx.Response(200)

        cache = StatsCache(StatsStore(STORE_URL, transport=httpx.MockTransport(handler)))
        cache.record(7, "a")

        async def run():
            cache.record(7, "b")
            pending = asyncio.all_tasks() - {asyncio.current_task()}
            await asyncio.gather(*pending)

        asyncio.run(run())
        assert [body["totalDownloads"] for body in saved] == [2]
