# flickpick/ai/tastedive.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol, Sequence
import asyncio
import re

import httpx

from ..cache.store import CacheStore
from ..config import Settings, settings as default_settings
from ..errors import CacheStoreError, ProviderError, ProviderErrorKind, TMDBError
from ..models import Recommendation, RecommendationResult
from ..utils.logger import get_logger
from .base import RATE_LIMIT_MARKERS, LLMProvider
from .tmdb_fallback import content_kind

logger = get_logger(__name__)

QUOTA_KEY = "tastedive:rate_limit"
QUOTA_WINDOW_S = 3600
MAX_SOURCE_TITLES = 3
RESULT_LIMIT = 15
MAX_RESULTS = 10
TEASER_CHARS = 150
DEFAULT_REASON = "Similar to what you're looking for"

_QUOTED = re.compile(r"[\"']([^\"']+)[\"']")
_LIKE_PATTERNS = (
    re.compile(r"(?i:like|similar to|reminds? (?:me )?of)\s+([A-Z][^,.\"']+)"),
    re.compile(r"(?i:movies?\s+(?:like|such as))\s+([A-Z][^,.\"']+)"),
    re.compile(r"(?i:shows?\s+(?:like|such as))\s+([A-Z][^,.\"']+)"),
)
_NOT_TITLES = {"The", "A", "An", "This", "That"}

class SearchClient(Protocol):
    async def search(self, media: str, query: str, year: Optional[int] = None) -> List[Dict[str, Any]]: ...

def extract_title_mentions(prompt: str) -> List[str]:
    """
    Titles named in a free-text prompt: anything quoted, plus capitalised
    names after "like", "similar to" or "reminds me of".
    """
    found: List[str] = []
    for match in _QUOTED.finditer(prompt):
        title = match.group(1).strip()
        if title:
            found.append(title)
    for pattern in _LIKE_PATTERNS:
        for match in pattern.finditer(prompt):
            title = match.group(1).strip()
            if len(title) > 2 and title not in _NOT_TITLES:
                found.append(title)
    return list(dict.fromkeys(found))

def sanitize_title(title: str) -> str:
    """Colons and commas are query syntax for TasteDive."""
    return re.sub(r"\s+", " ", title.replace(":", " -").replace(",", "")).strip()

def build_query(titles: Sequence[str], kind: str) -> str:
    return ",".join(f"{kind}:{sanitize_title(t)}" for t in titles)

def _year(row: Dict[str, Any]) -> Optional[int]:
    released = row.get("release_date") or row.get("first_air_date") or ""
    return int(released[:4]) if released[:4].isdigit() else None

def _teaser_reason(item: Dict[str, Any]) -> str:
    teaser = item.get("wTeaser") or item.get("description") or ""
    if not isinstance(teaser, str) or not teaser.strip():
        return DEFAULT_REASON
    teaser = teaser.strip()
    return teaser[:TEASER_CHARS] + ("..." if len(teaser) > TEASER_CHARS else "")

def similar_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Result rows from a /similar body; older responses capitalise the keys."""
    block = data.get("similar") or data.get("Similar")
    if not isinstance(block, dict):
        return []
    rows = block.get("results") or block.get("Results") or []
    return [r for r in rows if isinstance(r, dict)]

class TasteDiveProvider(LLMProvider):
    """
    "More like X" via TasteDive. Only answers prompts that name titles, so it
    sits behind the language models and ahead of the TMDB keyword fallback.

    Source titles are normalised through TMDB search first and every match is
    mapped back to a TMDB row, which gives real ids, years and posters.
    The free tier allows 300 calls an hour; calls are counted in the shared
    cache store when one is given.
    """
    name = "tastedive"

    def __init__(self, tmdb: SearchClient, config: Optional[Settings] = None, store: Optional[CacheStore] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        config = config or default_settings
        super().__init__(config.tastedive_api_key, config.tastedive_timeout_s, transport)
        self.tmdb = tmdb
        self.store = store
        self.url: str = config.tastedive_api_base
        self.hourly_quota: int = config.tastedive_hourly_quota

    async def _spend_quota(self) -> None:
        if self.store is None:
            return
        try:
            used = await self.store.incr(QUOTA_KEY, QUOTA_WINDOW_S)
        except CacheStoreError as e:
            logger.warning("TasteDive quota counter unavailable: %s", e)
            return
        if used > self.hourly_quota:
            raise ProviderError(ProviderErrorKind.RATE_LIMITED, f"tastedive hourly quota of {self.hourly_quota} used up")

    async def _first_match(self, media: str, title: str) -> Optional[Dict[str, Any]]:
        try:
            rows = await self.tmdb.search(media, title)
        except TMDBError as e:
            logger.debug("TMDB search for %r failed: %s", title, e)
            return None
        for row in rows:
            if row.get("id") is not None and (row.get("title") or row.get("name")):
                return row
        return None

    async def _normalize(self, titles: Sequence[str], media: str) -> List[str]:
        """TMDB's spelling of each title when it knows it, else the title as typed."""
        rows = await asyncio.gather(*(self._first_match(media, t) for t in titles))
        return [str(row.get("title") or row.get("name")) if row else title for title, row in zip(titles, rows)]

    async def _to_recommendation(self, item: Dict[str, Any], media: str) -> Optional[Recommendation]:
        name = item.get("name") or item.get("Name")
        if not isinstance(name, str) or not name.strip():
            return None
        row = await self._first_match(media, name.strip())
        if row is None:
            return None
        return Recommendation(
            id=int(row["id"]),
            title=str(row.get("title") or row.get("name")),
            media_type=content_kind(row, media),  # type: ignore[arg-type]
            reason=_teaser_reason(item),
            year=_year(row),
            poster_path=row.get("poster_path"),
        )

    async def _recommend(self, prompt: str, content_types: Optional[Sequence[str]]) -> RecommendationResult:
        token = self._require_key()
        titles = extract_title_mentions(prompt)
        if not titles:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, "tastedive needs a title in the prompt", retryable=False)

        types = set(content_types or ())
        media = "tv" if "tv" in types and "movie" not in types else "movie"
        kind = "show" if media == "tv" else "movie"
        sources = await self._normalize(titles[:MAX_SOURCE_TITLES], media)

        await self._spend_quota()
        params = {"q": build_query(sources, kind), "type": kind, "info": "1", "limit": RESULT_LIMIT, "k": token}
        data = await self._get_json(self.url, params=params, headers={"Accept": "application/json"})
        if "error" in data:
            message = str(data["error"])
            limited = any(m in message.lower() for m in RATE_LIMIT_MARKERS)
            error_kind = ProviderErrorKind.RATE_LIMITED if limited else ProviderErrorKind.UNAVAILABLE
            raise ProviderError(error_kind, f"TasteDive API error: {message[:200]}")

        items = similar_items(data)
        if not items:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"tastedive found nothing similar to {', '.join(sources)}")
        logger.info("[TasteDive] %d similar items for %s", len(items), ", ".join(sources))

        mapped = await asyncio.gather(*(self._to_recommendation(item, media) for item in items))
        return self._result([rec for rec in mapped if rec is not None][:MAX_RESULTS])

    async def fetch(self, prompt: str, content_types: Optional[Sequence[str]] = None) -> RecommendationResult:
        return await self._bounded(self._recommend(prompt, content_types))
