"""Provider adapter contract.

Every recommendation backend implements ``ProviderAdapter.fetch``: issue its own
request under its own timeout and either return a non-empty
``RecommendationResult`` or raise ``ProviderError``. The resolver iterates a
list of adapters and never branches on which one it is talking to.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar
import asyncio

import httpx

from ..errors import ProviderError, ProviderErrorKind
from ..models import Recommendation, RecommendationResult
from .parser import parse_ai_response
from .prompts import SYSTEM_ROLE, build_prompt

T = TypeVar("T")

RATE_LIMIT_MARKERS = ("quota", "rate limit", "resource_exhausted", "too many requests")


class ProviderAdapter(ABC):
    name: str = "provider"
    # the last link of the chain may answer with an empty-but-valid result
    terminal: bool = False
    timeout_s: float = 30.0

    def is_available(self) -> bool:
        return True

    @abstractmethod
    async def fetch(self, prompt: str, content_types: Optional[Sequence[str]] = None) -> RecommendationResult:
        ...

    async def _bounded(self, aw: Awaitable[T]) -> T:
        """Run one upstream call under this adapter's timeout."""
        try:
            return await asyncio.wait_for(aw, timeout=self.timeout_s)
        except asyncio.TimeoutError as e:
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"{self.name} timed out after {self.timeout_s}s") from e

    def _result(self, recommendations: List[Recommendation]) -> RecommendationResult:
        """
        Build the adapter's answer; an empty list is a failure unless terminal.
        """
        usable = [r for r in recommendations if r.title.strip()]
        if not usable and not self.terminal:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"{self.name} returned no usable recommendations")
        return RecommendationResult(results=tuple(usable), provider=self.name, is_fallback=False)


class LLMProvider(ProviderAdapter):
    """
    Shared plumbing for keyed JSON-over-HTTP recommendation APIs.
    """

    def __init__(self, api_key: Optional[str], timeout_s: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.api_key: str = (api_key or "").strip()
        self.timeout_s = timeout_s
        self._transport = transport

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, f"{self.name} API key not configured", retryable=False)
        return self.api_key

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        """
        Send one request and decode JSON, mapping transport and status failures onto ProviderError kinds.
        """
        async def _call() -> httpx.Response:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), transport=self._transport) as client:
                return await client.request(method, url, **kwargs)

        try:
            r = await self._bounded(_call())
        except httpx.TimeoutException as e:
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"{self.name} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, f"{self.name} HTTP client error: {e}") from e

        body_text = r.text
        if r.status_code == 429 or (r.status_code >= 400 and any(m in body_text.lower() for m in RATE_LIMIT_MARKERS)):
            raise ProviderError(ProviderErrorKind.RATE_LIMITED, f"{self.name} rate limited ({r.status_code})")
        if r.status_code in (401, 403):
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, f"{self.name} rejected credentials ({r.status_code})", retryable=False)
        if r.status_code == 402:
            # account out of credit; retrying cannot help
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, f"{self.name} payment required: {body_text[:200]}", retryable=False)
        if r.status_code >= 400:
            raise ProviderError(ProviderErrorKind.UNAVAILABLE, f"{self.name} non-2xx ({r.status_code}): {body_text[:200]}")

        try:
            data = r.json()
        except ValueError as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"{self.name} returned non-JSON body") from e
        if not isinstance(data, dict):
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"{self.name} returned unexpected JSON")
        return data

    async def _post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None,
                         params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return await self._request_json("POST", url, json=payload, headers=headers, params=params)

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                        headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return await self._request_json("GET", url, params=params, headers=headers)


class ChatCompletionsProvider(LLMProvider):
    """
    OpenAI-compatible ``/chat/completions`` endpoint answering in JSON mode.
    Subclasses only pick the URL and the configured key, model and timeout.
    """
    url: str = ""
    max_tokens: int = 4000

    def __init__(self, api_key: Optional[str], model: str, timeout_s: float,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(api_key, timeout_s, transport)
        self.model: str = model

    async def fetch(self, prompt: str, content_types: Optional[Sequence[str]] = None) -> RecommendationResult:
        token = self._require_key()
        headers: Dict[str, str] = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        payload: Dict[str, object] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_ROLE},
                {"role": "user", "content": build_prompt(prompt, content_types)},
            ],
            "temperature": 0.7,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        data = await self._post_json(self.url, payload, headers=headers)

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"{self.name} response missing content: {e}") from e
        if not isinstance(text, str) or not text.strip():
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"{self.name} returned empty content")
        return self._result(parse_ai_response(text, self.name))
