# flickpick/ai/gemini.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import Settings, settings as default_settings
from ..errors import ProviderError, ProviderErrorKind
from ..models import RecommendationResult
from ..utils.logger import get_logger
from .base import LLMProvider
from .parser import parse_ai_response
from .prompts import build_prompt

logger = get_logger(__name__)

GEMINI_BASE = "https://generativelanguage.googleapis.com"

# Preference order when the configured model is gone: newest fast text models first
MODEL_PREFERENCE: List[str] = [
    "gemini-2.0-flash",
    "gemini-2.0-flash-001",
    "gemini-2.0-flash-lite",
    "gemini-1.5-flash",
    "gemini-1.5-flash-latest",
    "gemini-pro",
]

def api_version_for(model: str) -> str:
    """1.5/2.x models live under v1beta."""
    name = (model or "").lower()
    return "v1beta" if any(v in name for v in ("1.5", "2.0", "2.5")) else "v1"

def extract_text(data: Dict[str, Any]) -> str:
    """
    Pull candidates[0].content.parts[0].text out of a generateContent body.
    """
    if "error" in data:
        err = data["error"]
        msg = err.get("message", "Unknown Gemini API error") if isinstance(err, dict) else str(err)
        raise ProviderError(ProviderErrorKind.UNAVAILABLE, f"Gemini API error: {msg}")
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Empty 'candidates' array in Gemini response")
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    if not isinstance(content, dict):
        raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Candidate content missing")
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Content parts missing or invalid")
    text = parts[0].get("text", "")
    if not isinstance(text, str) or not text.strip():
        raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, "Empty response from Gemini")
    return text

class GeminiProvider(LLMProvider):
    """
    Google Gemini over the public REST API (API key as query param).
    """
    name = "gemini"

    def __init__(self, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        config = config or default_settings
        super().__init__(config.gemini_api_key, config.gemini_timeout_s, transport)
        self.model: str = config.gemini_model
        self.available_models: List[str] = []

    def _url(self, model: str) -> str:
        return f"{GEMINI_BASE}/{api_version_for(model)}/models/{model}:generateContent"

    async def _list_models(self, token: str) -> None:
        """Populate available_models from both API versions; failures leave it empty."""
        names: List[str] = []
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), transport=self._transport) as client:
            for ver in ("v1", "v1beta"):
                try:
                    resp = await client.get(f"{GEMINI_BASE}/{ver}/models", params={"key": token})
                except httpx.HTTPError:
                    continue
                if resp.status_code != 200:
                    continue
                try:
                    body = resp.json()
                except ValueError:
                    logger.warning("Gemini %s model list was not JSON, skipping", ver)
                    continue
                if not isinstance(body, dict):
                    continue
                for m in body.get("models") or []:
                    if isinstance(m, dict) and isinstance(m.get("name"), str):
                        names.append(m["name"].split("/")[-1])
        self.available_models = sorted(set(names))

    def _choose_fallback_model(self) -> Optional[str]:
        for p in MODEL_PREFERENCE:
            if p in self.available_models and p != self.model:
                return p
        for m in self.available_models:
            if m.startswith("gemini-") and "flash" in m and m != self.model:
                return m
        return None

    async def fetch(self, prompt: str, content_types: Optional[Sequence[str]] = None) -> RecommendationResult:
        token = self._require_key()
        params = {"key": token}
        payload: Dict[str, object] = {
            "contents": [{"parts": [{"text": build_prompt(prompt, content_types)}]}],
            "generationConfig": {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 2048},
        }

        try:
            data = await self._post_json(self._url(self.model), payload, params=params)
        except ProviderError as e:
            # configured model retired: pick another one once and remember it
            if e.kind is not ProviderErrorKind.UNAVAILABLE or "(404)" not in str(e):
                raise
            await self._list_models(token)
            target = self._choose_fallback_model()
            if not target:
                raise
            logger.info("Gemini model %s not found, switching to %s", self.model, target)
            data = await self._post_json(self._url(target), payload, params=params)
            self.model = target

        return self._result(parse_ai_response(extract_text(data), self.name))
