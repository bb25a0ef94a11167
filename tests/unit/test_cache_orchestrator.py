import asyncio
import unittest

from flickpick.cache.orchestrator import CacheAside
from flickpick.cache.store import CacheStore, MemoryCacheStore
from flickpick.errors import CacheStoreError, ProviderError, ProviderErrorKind
from flickpick.models import Recommendation, RecommendationResult


def make_result(provider="groq", titles=("Paddington 2",)):
    recs = tuple(Recommendation(id=f"movie-{i}", title=t, reason="fits") for i, t in enumerate(titles))
    return RecommendationResult(results=recs, provider=provider, is_fallback=False)


class CountingProducer:
    def __init__(self, result=None, error=None, gate=None):
        self.calls = 0
        self.result = result or make_result()
        self.error = error
        self.gate = gate

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class BrokenStore(CacheStore):
    """Every operation fails as if the backend were unreachable."""

    def __init__(self):
        self.sets = 0

    async def get(self, key):
        raise CacheStoreError("connection refused")

    async def set(self, key, value, ttl_seconds):
        self.sets += 1
        raise CacheStoreError("connection refused")

    async def delete(self, key):
        raise CacheStoreError("connection refused")

    async def incr(self, key, ttl_seconds):
        raise CacheStoreError("connection refused")


class WriteOnlyBrokenStore(MemoryCacheStore):
    async def set(self, key, value, ttl_seconds):
        raise CacheStoreError("read-only replica")


class SlowReadStore(MemoryCacheStore):
    """Reads take longer than the producer, like a remote store under latency."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.reads = 0

    async def get(self, key):
        self.reads += 1
        snapshot = await super().get(key)
        await asyncio.sleep(self.delay)
        return snapshot


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCacheAside(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = MemoryCacheStore(timer=self.clock)
        self.cache = CacheAside(self.store, RecommendationResult)

    async def test_second_call_within_ttl_is_a_hit(self):
        producer = CountingProducer()
        first = await self.cache.get_cached("k", producer, 60)
        self.clock.now = 59
        second = await self.cache.get_cached("k", producer, 60)
        self.assertEqual(producer.calls, 1)
        self.assertEqual(first, second)

    async def test_expired_entry_is_recomputed(self):
        producer = CountingProducer()
        await self.cache.get_cached("k", producer, 60)
        self.clock.now = 61
        await self.cache.get_cached("k", producer, 60)
        self.assertEqual(producer.calls, 2)

    async def test_concurrent_callers_share_one_producer(self):
        gate = asyncio.Event()
        producer = CountingProducer(gate=gate)
        waiters = [asyncio.create_task(self.cache.get_cached("k", producer, 60)) for _ in range(10)]
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        self.assertTrue(self.cache.inflight("k"))
        gate.set()
        results = await asyncio.gather(*waiters)
        self.assertEqual(producer.calls, 1)
        self.assertTrue(all(r == results[0] for r in results))
        await asyncio.sleep(0)
        self.assertFalse(self.cache.inflight("k"))

    async def test_slow_store_read_still_coalesces(self):
        store = SlowReadStore(delay=0.05)
        cache = CacheAside(store, RecommendationResult)
        calls = 0

        async def producer():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return make_result()

        results = await asyncio.gather(
            cache.get_cached("k", producer, 60),
            cache.get_cached("k", producer, 60),
        )
        self.assertEqual(calls, 1)
        self.assertEqual(store.reads, 1)
        self.assertEqual(results[0], results[1])

    async def test_different_keys_do_not_coalesce(self):
        producer = CountingProducer()
        await asyncio.gather(
            self.cache.get_cached("a", producer, 60),
            self.cache.get_cached("b", producer, 60),
        )
        self.assertEqual(producer.calls, 2)

    async def test_failure_reaches_all_waiters_and_is_not_cached(self):
        gate = asyncio.Event()
        producer = CountingProducer(error=ProviderError(ProviderErrorKind.UNAVAILABLE), gate=gate)
        waiters = [asyncio.create_task(self.cache.get_cached("k", producer, 60)) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        outcomes = await asyncio.gather(*waiters, return_exceptions=True)
        self.assertEqual(producer.calls, 1)
        self.assertTrue(all(isinstance(o, ProviderError) for o in outcomes))
        self.assertIsNone(await self.store.get("k"))

        producer.error = None
        result = await self.cache.get_cached("k", producer, 60)
        self.assertEqual(producer.calls, 2)
        self.assertEqual(result.provider, "groq")

    async def test_unreachable_store_still_returns_fresh_result(self):
        store = BrokenStore()
        cache = CacheAside(store, RecommendationResult)
        producer = CountingProducer()
        result = await cache.get_cached("k", producer, 60)
        self.assertEqual(result, producer.result)
        self.assertEqual(store.sets, 1)
        await cache.get_cached("k", producer, 60)
        self.assertEqual(producer.calls, 2)

    async def test_write_failure_returns_result(self):
        cache = CacheAside(WriteOnlyBrokenStore(), RecommendationResult)
        producer = CountingProducer()
        result = await cache.get_cached("k", producer, 60)
        self.assertEqual(result.results[0].title, "Paddington 2")

    async def test_undecodable_entry_counts_as_miss(self):
        await self.store.set("k", "{not json", 60)
        producer = CountingProducer()
        await self.cache.get_cached("k", producer, 60)
        self.assertEqual(producer.calls, 1)

    async def test_should_cache_false_skips_write(self):
        producer = CountingProducer(result=make_result(titles=()))
        await self.cache.get_cached("k", producer, 60, should_cache=lambda r: bool(r.results))
        self.assertIsNone(await self.store.get("k"))

    async def test_cached_value_keeps_fallback_flag(self):
        fallback = make_result(provider="tmdb").model_copy(update={"is_fallback": True})
        await self.cache.get_cached("k", CountingProducer(result=fallback), 60)
        again = await self.cache.get_cached("k", CountingProducer(), 60)
        self.assertEqual(again.provider, "tmdb")
        self.assertTrue(again.is_fallback)

    async def test_cancelled_caller_does_not_cancel_shared_work(self):
        gate = asyncio.Event()
        producer = CountingProducer(gate=gate)
        quitter = asyncio.create_task(self.cache.get_cached("k", producer, 60))
        stayer = asyncio.create_task(self.cache.get_cached("k", producer, 60))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        quitter.cancel()
        gate.set()
        result = await stayer
        self.assertEqual(result, producer.result)
        self.assertEqual(producer.calls, 1)
        with self.assertRaises(asyncio.CancelledError):
            await quitter

    async def test_invalidate_forces_recompute(self):
        producer = CountingProducer()
        await self.cache.get_cached("k", producer, 60)
        await self.cache.invalidate("k")
        await self.cache.get_cached("k", producer, 60)
        self.assertEqual(producer.calls, 2)

    async def test_invalidate_swallows_store_failure(self):
        cache = CacheAside(BrokenStore(), RecommendationResult)
        await cache.invalidate("k")


if __name__ == "__main__":
    unittest.main()
