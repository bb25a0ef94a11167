from __future__ import annotations
from typing import List, Dict, Any, Optional
import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter
from ..config import Settings, settings as default_settings
from ..errors import TMDBError

def _is_transient(exc: BaseException) -> bool:
    """
    Retry network hiccups and 5xx/429 answers; 4xx are final.
    """
    if isinstance(exc, TMDBError):
        return exc.status >= 500 or exc.status == 429
    return isinstance(exc, httpx.TransportError)

_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential_jitter(0.1, 0.6),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)

class TMDBClient:
    """
    Minimal typed adapter for TMDB (v3 key as query param or v4 bearer token).
    """

    def __init__(self, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        config = config or default_settings
        self.base: str = config.tmdb_api_base.rstrip("/")
        self.timeout: httpx.Timeout = httpx.Timeout(config.request_timeout_s)
        self.v3_key: str = (config.tmdb_v3_key or "").strip()
        self.bearer: str = (config.tmdb_bearer_token or "").strip()
        self.language: str = config.tmdb_language
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        """
        Common headers for all requests.
        """
        headers = {"Accept": "application/json"}
        if self.bearer:
            headers["Authorization"] = f"Bearer {self.bearer}"
        return headers

    def _params(self) -> Dict[str, str]:
        """
        Authentication parameters for v3 API key.
        """
        if self.bearer or not self.v3_key:
            return {}
        return {"api_key": self.v3_key}

    @_retry
    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query: Dict[str, Any] = {"language": self.language}
        query.update(params or {})
        query.update(self._params())
        async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers(), transport=self._transport) as client:
            r: httpx.Response = await client.get(f"{self.base}{path}", params=query)
            if r.status_code >= 400:
                raise TMDBError(r.status_code, path, r.text)
            payload = r.json()
        return payload if isinstance(payload, dict) else {}

    async def discover(self, media: str, params: Dict[str, Any], page: int = 1) -> List[Dict[str, Any]]:
        """
        /discover/{movie|tv} with arbitrary filters; returns the raw result rows.
        """
        query = dict(params)
        query.setdefault("include_adult", "false")
        query["page"] = page
        payload = await self._get(f"/discover/{media}", query)
        return list(payload.get("results") or [])

    async def search(self, media: str, query: str, year: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"query": query, "include_adult": "false", "page": 1}
        if year:
            params["primary_release_year" if media == "movie" else "first_air_date_year"] = year
        payload = await self._get(f"/search/{media}", params)
        return list(payload.get("results") or [])

    async def similar(self, media: str, content_id: int) -> List[Dict[str, Any]]:
        payload = await self._get(f"/{media}/{content_id}/similar")
        return list(payload.get("results") or [])

    async def recommendations(self, media: str, content_id: int) -> List[Dict[str, Any]]:
        payload = await self._get(f"/{media}/{content_id}/recommendations")
        return list(payload.get("results") or [])
