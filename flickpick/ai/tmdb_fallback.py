from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..config import Settings, settings as default_settings
from ..constants import ANIMATION_GENRE_ID
from ..errors import ProviderError, ProviderErrorKind, TMDBError
from ..models import Recommendation, RecommendationResult
from ..utils.logger import get_logger
from .base import ProviderAdapter
from .intent_parser import Intent, parse_user_intent, reason_for

logger = get_logger(__name__)

PER_MEDIA_LIMIT = 6
MAX_RESULTS = 10

class DiscoverClient(Protocol):
    async def discover(self, media: str, params: Dict[str, Any], page: int = 1) -> List[Dict[str, Any]]: ...

def content_kind(row: Dict[str, Any], media: str) -> str:
    """
    Japanese animation is anime, any other animation is animation.
    """
    genre_ids = row.get("genre_ids") or []
    if ANIMATION_GENRE_ID not in genre_ids:
        return media
    japanese = row.get("original_language") == "ja" or "JP" in (row.get("origin_country") or [])
    return "anime" if japanese else "animation"

def _year(row: Dict[str, Any]) -> Optional[int]:
    released = row.get("release_date") or row.get("first_air_date") or ""
    return int(released[:4]) if released[:4].isdigit() else None

class TMDBFallbackProvider(ProviderAdapter):
    """
    Last link of the chain: keyword intent parsing plus TMDB discover.

    Empty policy: when TMDB answered but nothing matched, the filters are dropped
    once (plain popularity); if that is still empty the adapter returns an empty
    but valid result. It only raises when every TMDB call failed outright.
    """
    name = "tmdb"
    terminal = True

    def __init__(self, tmdb: DiscoverClient, config: Optional[Settings] = None) -> None:
        config = config or default_settings
        self.tmdb = tmdb
        self.timeout_s = config.tmdb_fallback_timeout_s

    async def _discover(self, intent: Intent, broad: bool) -> List[Recommendation]:
        medias = ["movie", "tv"] if intent.media_type == "both" else [intent.media_type]
        found: List[Recommendation] = []
        failures = 0
        for media in medias:
            params = {"sort_by": "popularity.desc", "vote_count.gte": 100} if broad else intent.discover_params(media)
            try:
                rows = await self.tmdb.discover(media, params)
            except TMDBError as e:
                failures += 1
                logger.warning("TMDB %s discover failed: %s", media, e)
                continue
            except Exception as e:  # noqa: BLE001
                failures += 1
                logger.warning("TMDB %s discover transport failure: %r", media, e)
                continue
            for row in rows[:PER_MEDIA_LIMIT]:
                title = row.get("title") or row.get("name")
                if not title or row.get("id") is None:
                    continue
                found.append(Recommendation(
                    id=int(row["id"]),
                    title=str(title),
                    media_type=content_kind(row, media),  # type: ignore[arg-type]
                    reason=reason_for(intent, row),
                    year=_year(row),
                    poster_path=row.get("poster_path"),
                ))
        if failures == len(medias):
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, "TMDB discover failed for every media type")
        return found

    @staticmethod
    def _dedupe(items: List[Recommendation]) -> List[Recommendation]:
        seen = set()
        unique: List[Recommendation] = []
        for rec in items:
            key = (rec.title.lower(), rec.year)
            if key in seen:
                continue
            seen.add(key)
            unique.append(rec)
            if len(unique) >= MAX_RESULTS:
                break
        return unique

    async def _recommend(self, prompt: str, content_types: Optional[Sequence[str]]) -> RecommendationResult:
        intent = parse_user_intent(prompt, content_types)
        found = await self._discover(intent, broad=False)
        if not found:
            logger.info("TMDB fallback matched nothing for %r, broadening", prompt[:50])
            found = await self._discover(intent, broad=True)
        return self._result(self._dedupe(found))

    async def fetch(self, prompt: str, content_types: Optional[Sequence[str]] = None) -> RecommendationResult:
        return await self._bounded(self._recommend(prompt, content_types))
