from __future__ import annotations
from typing import Any, Dict, List, Optional
import json
import re

from ..models import Recommendation
from ..utils.logger import get_logger

logger = get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_ARRAY = re.compile(r"\[[\s\S]*\]")
_TRAILING_COMMA = re.compile(r",\s*([\]}])")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")

WRAPPER_KEYS = (
    "recommendations", "results", "movies", "shows", "data", "items", "output",
    "response", "answer", "content", "suggestions", "titles", "list",
)

TV_ALIASES = {"tv", "series", "show", "tvshow", "tv_show"}
ANIME_ALIASES = {"anime", "animation"}

def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")

def _first_str(item: Dict[str, Any], *keys: str) -> Optional[str]:
    for k in keys:
        v = item.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None

def _year(item: Dict[str, Any]) -> Optional[int]:
    for k in ("year", "Year", "release_year"):
        v = item.get(k)
        if isinstance(v, bool):
            continue
        if isinstance(v, int):
            return v or None
        if isinstance(v, str):
            m = re.match(r"\s*(\d{4})", v)
            if m:
                return int(m.group(1))
    return None

def _media_type(item: Dict[str, Any]) -> str:
    raw = str(item.get("type") or item.get("Type") or item.get("media_type") or item.get("mediaType") or "").lower()
    if raw in TV_ALIASES:
        return "tv"
    if raw in ANIME_ALIASES:
        return "anime"
    return "movie"

def normalize_item(item: Dict[str, Any]) -> Optional[Recommendation]:
    """
    Map one loosely-shaped model item onto a Recommendation; None when it has no title.
    """
    title = _first_str(item, "title", "name", "Title", "Name")
    if not title:
        return None
    year = _year(item)
    media_type = _media_type(item)
    reason = _first_str(item, "reason", "Reason", "description", "explanation") or "Recommended based on your preferences"
    return Recommendation(
        id=f"{media_type}-{slugify(title)}-{year or 0}",
        title=title,
        media_type=media_type,  # type: ignore[arg-type]
        reason=reason,
        year=year,
    )

def _unwrap(text: str) -> str:
    """Some models answer {"recommendations": [...]} instead of a bare array."""
    try:
        wrapper = json.loads(text)
    except json.JSONDecodeError:
        return text
    if not isinstance(wrapper, dict):
        return text
    for key in WRAPPER_KEYS:
        if isinstance(wrapper.get(key), list):
            return json.dumps(wrapper[key])
    for value in wrapper.values():
        if isinstance(value, list):
            return json.dumps(value)
    return text

def _repair(text: str) -> str:
    text = _TRAILING_COMMA.sub(r"\1", text)
    return _CONTROL.sub(" ", text)

def parse_ai_response(text: str, provider: str) -> List[Recommendation]:
    """
    Parse model output into recommendations, tolerating code fences, wrapper
    objects and trailing commas. Returns an empty list when nothing usable is found.
    """
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        m = _FENCE.search(cleaned)
        if m:
            cleaned = m.group(1).strip()

    if cleaned.startswith("{"):
        cleaned = _unwrap(cleaned)
    else:
        m = _ARRAY.search(cleaned)
        if m:
            cleaned = m.group(0)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(_repair(cleaned))
        except json.JSONDecodeError as e:
            logger.warning("[%s] could not parse response: %s :: %s", provider, e, text[:300])
            return []

    if not isinstance(parsed, list):
        logger.warning("[%s] response is not an array: %s", provider, type(parsed).__name__)
        return []

    out: List[Recommendation] = []
    for item in parsed:
        if isinstance(item, dict):
            rec = normalize_item(item)
            if rec is not None:
                out.append(rec)
    if not out and parsed:
        logger.warning("[%s] parsed %d items but none were valid", provider, len(parsed))
    return out
