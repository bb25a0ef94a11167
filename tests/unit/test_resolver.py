import unittest

from flickpick.ai.base import ProviderAdapter
from flickpick.ai.resolver import FallbackResolver, cooldown_key
from flickpick.cache.store import MemoryCacheStore
from flickpick.errors import AllProvidersExhausted, ProviderError, ProviderErrorKind
from flickpick.models import Recommendation, RecommendationResult


class FakeProvider(ProviderAdapter):
    """Replays a script of outcomes; a ProviderError is raised, anything else returned."""

    def __init__(self, name, *outcomes, available=True, terminal=False):
        self.name = name
        self.terminal = terminal
        self.available = available
        self.outcomes = list(outcomes)
        self.calls = 0

    def is_available(self):
        return self.available

    async def fetch(self, prompt, content_types=None):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def answer(name, *titles):
    recs = tuple(Recommendation(id=f"movie-{t}", title=t) for t in titles)
    return RecommendationResult(results=recs, provider=name, is_fallback=False)


def failure(kind):
    return ProviderError(kind, f"{kind.value} from fake")


def resolver(*providers, store=None, attempts=1):
    return FallbackResolver(
        providers, store=store, retry_attempts=attempts, retry_initial_wait=0, retry_max_wait=0,
    )


class TestFallbackResolver(unittest.IsolatedAsyncioTestCase):
    async def test_primary_success_stops_the_chain(self):
        a = FakeProvider("A", answer("A", "Amelie"))
        b = FakeProvider("B", answer("B", "Brazil"))
        c = FakeProvider("C", answer("C", "Casablanca"))
        result = await resolver(a, b, c).resolve("cozy films")
        self.assertEqual(result.provider, "A")
        self.assertFalse(result.is_fallback)
        self.assertEqual((b.calls, c.calls), (0, 0))

    async def test_rate_limited_primary_falls_back(self):
        a = FakeProvider("A", failure(ProviderErrorKind.RATE_LIMITED))
        b = FakeProvider("B", answer("B", "Brazil"))
        result = await resolver(a, b).resolve("cozy films")
        self.assertEqual(result.provider, "B")
        self.assertTrue(result.is_fallback)
        self.assertEqual(result.results[0].title, "Brazil")
        self.assertEqual(a.calls, 1)

    async def test_provider_name_comes_from_the_adapter(self):
        b = FakeProvider("B", answer("whatever", "Brazil"))
        a = FakeProvider("A", failure(ProviderErrorKind.INVALID_RESPONSE))
        result = await resolver(a, b).resolve("x")
        self.assertEqual(result.provider, "B")

    async def test_all_failures_raise_exhausted(self):
        a = FakeProvider("A", failure(ProviderErrorKind.UNAVAILABLE))
        b = FakeProvider("B", failure(ProviderErrorKind.TIMEOUT))
        c = FakeProvider("C", failure(ProviderErrorKind.INVALID_RESPONSE))
        with self.assertRaises(AllProvidersExhausted) as ctx:
            await resolver(a, b, c).resolve("x")
        self.assertIs(ctx.exception.last_kind, ProviderErrorKind.INVALID_RESPONSE)
        self.assertEqual(ctx.exception.attempts, 3)
        self.assertEqual((a.calls, b.calls, c.calls), (1, 1, 1))

    async def test_unexpected_exception_moves_on(self):
        a = FakeProvider("A", RuntimeError("boom"))
        b = FakeProvider("B", answer("B", "Brazil"))
        result = await resolver(a, b).resolve("x")
        self.assertEqual(result.provider, "B")

    async def test_unconfigured_provider_is_skipped(self):
        a = FakeProvider("A", answer("A", "Amelie"), available=False)
        b = FakeProvider("B", answer("B", "Brazil"))
        result = await resolver(a, b).resolve("x")
        self.assertEqual(a.calls, 0)
        self.assertEqual(result.provider, "B")
        self.assertTrue(result.is_fallback)

    async def test_rate_limit_cools_provider_down(self):
        store = MemoryCacheStore()
        a = FakeProvider("A", failure(ProviderErrorKind.RATE_LIMITED))
        b = FakeProvider("B", answer("B", "Brazil"))
        r = resolver(a, b, store=store)
        await r.resolve("x")
        self.assertIsNotNone(await store.get(cooldown_key("A")))

        await r.resolve("y")
        self.assertEqual(a.calls, 1)
        self.assertEqual(b.calls, 2)

    async def test_retryable_errors_are_retried(self):
        a = FakeProvider("A", failure(ProviderErrorKind.TIMEOUT), answer("A", "Amelie"))
        b = FakeProvider("B", answer("B", "Brazil"))
        result = await resolver(a, b, attempts=2).resolve("x")
        self.assertEqual(a.calls, 2)
        self.assertEqual(b.calls, 0)
        self.assertEqual(result.provider, "A")

    async def test_rate_limit_is_not_retried(self):
        a = FakeProvider("A", failure(ProviderErrorKind.RATE_LIMITED), answer("A", "Amelie"))
        b = FakeProvider("B", answer("B", "Brazil"))
        await resolver(a, b, attempts=3).resolve("x")
        self.assertEqual(a.calls, 1)

    async def test_terminal_empty_result_is_accepted(self):
        a = FakeProvider("A", failure(ProviderErrorKind.UNAVAILABLE))
        tmdb = FakeProvider("tmdb", answer("tmdb"), terminal=True)
        result = await resolver(a, tmdb).resolve("x")
        self.assertEqual(result.results, ())
        self.assertEqual(result.provider, "tmdb")
        self.assertTrue(result.is_fallback)

    async def test_statuses(self):
        store = MemoryCacheStore()
        await store.set(cooldown_key("B"), "1", 60)
        a = FakeProvider("A", answer("A", "Amelie"), available=False)
        b = FakeProvider("B", answer("B", "Brazil"))
        c = FakeProvider("tmdb", answer("tmdb"), terminal=True)
        statuses = await resolver(a, b, c, store=store).statuses()
        self.assertEqual(
            statuses,
            [
                {"name": "A", "available": False, "limited": False, "terminal": False},
                {"name": "B", "available": True, "limited": True, "terminal": False},
                {"name": "tmdb", "available": True, "limited": False, "terminal": True},
            ],
        )

    def test_requires_providers(self):
        with self.assertRaises(ValueError):
            FallbackResolver([])


if __name__ == "__main__":
    unittest.main()
