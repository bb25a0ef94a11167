from __future__ import annotations
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple
import asyncio
import random

from ..constants import MOVIE_GENRES, TV_GENRES
from ..errors import InvalidInput, TMDBError
from ..models import (
    BecauseYouLiked,
    ContentItem,
    GenreRecommendations,
    RecommendationsResponse,
    WatchlistItem,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_PER_GROUP = 12
TOP_GENRES = 2
RECENT_WINDOW = 5

class CatalogClient(Protocol):
    async def discover(self, media: str, params: Dict[str, Any], page: int = 1) -> List[Dict[str, Any]]: ...
    async def similar(self, media: str, content_id: int) -> List[Dict[str, Any]]: ...
    async def recommendations(self, media: str, content_id: int) -> List[Dict[str, Any]]: ...

def to_content(row: Dict[str, Any], media: str) -> ContentItem:
    released = row.get("release_date") or row.get("first_air_date") or ""
    return ContentItem(
        id=int(row["id"]),
        title=str(row.get("title") or row.get("name") or "Unknown"),
        media_type=media,  # type: ignore[arg-type]
        poster_path=row.get("poster_path"),
        vote_average=float(row.get("vote_average") or 0.0),
        year=int(released[:4]) if released[:4].isdigit() else None,
        genre_ids=list(row.get("genre_ids") or []),
    )

def genre_preferences(items: Sequence[WatchlistItem]) -> List[Tuple[int, str]]:
    """
    (genre_id, media_type) pairs, most frequent first.
    """
    counts: Counter[Tuple[int, str]] = Counter()
    for item in items:
        for gid in item.genre_ids:
            counts[(gid, item.media_type)] += 1
    return [pair for pair, _ in counts.most_common()]

class PersonalizedService:
    """
    Watchlist-driven groups: "because you liked X" and top-genre picks.
    """

    def __init__(self, tmdb: CatalogClient, choose: Callable[[Sequence[WatchlistItem]], WatchlistItem] = random.choice) -> None:
        self.tmdb = tmdb
        self.choose = choose

    async def _similar(self, item: WatchlistItem, exclude: Set[int]) -> List[ContentItem]:
        async def safe(call) -> List[Dict[str, Any]]:
            try:
                return await call
            except TMDBError as e:
                logger.warning("TMDB lookup failed for %s/%s: %s", item.media_type, item.id, e)
                return []

        similar, recs = await asyncio.gather(
            safe(self.tmdb.similar(item.media_type, item.id)),
            safe(self.tmdb.recommendations(item.media_type, item.id)),
        )
        seen: Set[int] = set()
        out: List[ContentItem] = []
        for row in similar + recs:
            rid = row.get("id")
            if rid is None or rid in seen or rid in exclude:
                continue
            seen.add(rid)
            out.append(to_content(row, item.media_type))
        return out[:MAX_PER_GROUP]

    async def _genre(self, genre_id: int, media: str, exclude: Set[int]) -> List[ContentItem]:
        rows = await self.tmdb.discover(media, {
            "with_genres": str(genre_id),
            "sort_by": "popularity.desc",
            "vote_average.gte": 6.5,
            "vote_count.gte": 100,
        })
        return [to_content(r, media) for r in rows if r.get("id") is not None and r["id"] not in exclude][:MAX_PER_GROUP]

    async def recommend(self, items: Sequence[WatchlistItem], exclude_ids: Optional[Sequence[int]] = None) -> RecommendationsResponse:
        if not items:
            raise InvalidInput("No watchlist items provided")
        exclude: Set[int] = set(exclude_ids or []) | {i.id for i in items}

        because: Optional[BecauseYouLiked] = None
        with_genres = [i for i in items if i.genre_ids]
        pool = (with_genres or list(items))[:RECENT_WINDOW]
        source = self.choose(pool)
        similar = await self._similar(source, exclude)
        if similar:
            because = BecauseYouLiked(source_item=source, recommendations=similar)

        top: List[GenreRecommendations] = []
        for genre_id, media in genre_preferences(items)[:TOP_GENRES]:
            names = MOVIE_GENRES if media == "movie" else TV_GENRES
            name = names.get(genre_id)
            if not name:
                continue
            recs = await self._genre(genre_id, media, exclude)
            if recs:
                top.append(GenreRecommendations(genre_name=name, genre_id=genre_id, recommendations=recs, type=media))

        return RecommendationsResponse(because_you_liked=because, top_genres=top)
