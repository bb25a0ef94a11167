import unittest

from flickpick.errors import InvalidInput, TMDBError
from flickpick.models import WatchlistItem
from flickpick.services.personalized import PersonalizedService, genre_preferences, to_content


class FakeCatalog:
    def __init__(self, similar=None, recommendations=None, discover=None, fail_similar=False):
        self._similar = similar or []
        self._recommendations = recommendations or []
        self._discover = discover or {}
        self.fail_similar = fail_similar
        self.discover_calls = []

    async def similar(self, media, content_id):
        if self.fail_similar:
            raise TMDBError(404, f"/{media}/{content_id}/similar")
        return self._similar

    async def recommendations(self, media, content_id):
        return self._recommendations

    async def discover(self, media, params, page=1):
        self.discover_calls.append((media, params))
        return self._discover.get((media, params["with_genres"]), [])


def item(tmdb_id, title, media="movie", genres=()):
    return WatchlistItem(id=tmdb_id, title=title, media_type=media, genre_ids=list(genres))


def row(tmdb_id, title="X", **extra):
    data = {"id": tmdb_id, "title": title, "vote_average": 7.2, "release_date": "2019-01-01"}
    data.update(extra)
    return data


first = lambda pool: pool[0]  # noqa: E731


class TestHelpers(unittest.TestCase):
    def test_to_content_for_tv_rows(self):
        content = to_content({"id": 5, "name": "Dark", "first_air_date": "2017-12-01", "vote_average": 8.4}, "tv")
        self.assertEqual((content.title, content.year, content.media_type), ("Dark", 2017, "tv"))

    def test_genre_preferences_most_frequent_first(self):
        items = [item(1, "a", genres=[18, 80]), item(2, "b", genres=[80]), item(3, "c", "tv", [80])]
        self.assertEqual(genre_preferences(items)[:2], [(80, "movie"), (18, "movie")])


class TestPersonalizedService(unittest.IsolatedAsyncioTestCase):
    async def test_empty_watchlist_is_invalid(self):
        with self.assertRaises(InvalidInput) as ctx:
            await PersonalizedService(FakeCatalog()).recommend([])
        self.assertEqual(ctx.exception.message, "No watchlist items provided")

    async def test_because_you_liked_dedupes_and_excludes(self):
        catalog = FakeCatalog(
            similar=[row(10, "Heat"), row(11, "Ronin"), row(1, "Self")],
            recommendations=[row(11, "Ronin"), row(12, "Thief"), row(99, "Seen")],
        )
        service = PersonalizedService(catalog, choose=first)
        response = await service.recommend([item(1, "Collateral", genres=[80])], exclude_ids=[99])
        because = response.because_you_liked
        self.assertEqual(because.source_item.title, "Collateral")
        self.assertEqual([c.id for c in because.recommendations], [10, 11, 12])

    async def test_top_genres(self):
        catalog = FakeCatalog(discover={
            ("movie", "80"): [row(20, "Heat")],
            ("movie", "18"): [row(21, "Magnolia"), row(1, "Collateral")],
        })
        service = PersonalizedService(catalog, choose=first)
        items = [item(1, "Collateral", genres=[80, 18]), item(2, "Drive", genres=[80])]
        response = await service.recommend(items)

        self.assertIsNone(response.because_you_liked)
        self.assertEqual([g.genre_name for g in response.top_genres], ["Crime", "Drama"])
        self.assertEqual([c.id for c in response.top_genres[1].recommendations], [21])
        params = catalog.discover_calls[0][1]
        self.assertEqual(params["vote_average.gte"], 6.5)
        self.assertEqual(params["vote_count.gte"], 100)

    async def test_similar_lookup_failure_is_tolerated(self):
        catalog = FakeCatalog(recommendations=[row(30, "Thief")], fail_similar=True)
        response = await PersonalizedService(catalog, choose=first).recommend([item(1, "Heat")])
        self.assertEqual([c.id for c in response.because_you_liked.recommendations], [30])

    async def test_response_uses_camel_case(self):
        catalog = FakeCatalog(similar=[row(10)])
        response = await PersonalizedService(catalog, choose=first).recommend([item(1, "Heat", genres=[80])])
        body = response.model_dump(by_alias=True)
        self.assertIn("becauseYouLiked", body)
        self.assertIn("sourceItem", body["becauseYouLiked"])
        self.assertIn("topGenres", body)


if __name__ == "__main__":
    unittest.main()
