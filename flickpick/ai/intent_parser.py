"""Turn a free-text request into TMDB discover filters.

Used by the metadata-only fallback provider when no language model answers.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import re

from ..constants import GENRE_KEYWORDS

TV_KEYWORDS = {"series", "show", "shows", "tv", "binge", "episodes", "seasons", "miniseries", "sitcom"}
MOVIE_KEYWORDS = {"movie", "movies", "film", "films", "cinema", "feature", "blockbuster"}
ANIME_KEYWORDS = ("anime", "manga", "japanese animation", "studio ghibli", "shonen", "seinen", "isekai", "mecha")

MOOD_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "cozy": ("cozy", "comforting", "warm", "relaxing", "peaceful", "calm", "soothing"),
    "thrilling": ("thrilling", "intense", "edge of seat", "suspenseful", "tense", "gripping"),
    "mind-bending": ("mind-bending", "complex", "thought-provoking", "cerebral", "twist"),
    "feel-good": ("feel-good", "uplifting", "heartwarming", "happy", "joyful", "wholesome"),
    "dark": ("dark", "gritty", "mature", "bleak", "noir"),
    "romantic": ("romantic", "love story", "romance", "relationship"),
    "nostalgic": ("nostalgic", "retro", "classic", "throwback", "vintage"),
    "scary": ("scary", "terrifying", "creepy", "horrifying", "spooky", "frightening"),
}

LANGUAGE_KEYWORDS: Dict[str, str] = {
    "korean": "ko", "k-drama": "ko", "kdrama": "ko",
    "japanese": "ja", "j-drama": "ja",
    "french": "fr", "spanish": "es", "german": "de", "italian": "it",
    "chinese": "zh", "indian": "hi", "bollywood": "hi",
    "thai": "th", "turkish": "tr", "scandinavian": "sv", "nordic": "sv",
}

@dataclass
class Intent:
    genres: List[int] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    media_type: str = "both"          # movie | tv | both
    anime: bool = False
    mood: Optional[str] = None
    language: Optional[str] = None
    year_gte: Optional[int] = None
    year_lte: Optional[int] = None
    vote_average: Optional[float] = None
    sort_by: str = "popularity.desc"

    def discover_params(self, media: str) -> Dict[str, Any]:
        """
        TMDB discover filters for one media type.
        """
        params: Dict[str, Any] = {"sort_by": self.sort_by, "vote_count.gte": 100}
        if self.genres:
            params["with_genres"] = ",".join(str(g) for g in self.genres)
        if self.vote_average:
            params["vote_average.gte"] = self.vote_average
        date_field = "primary_release_date" if media == "movie" else "first_air_date"
        if self.year_gte:
            params[f"{date_field}.gte"] = f"{self.year_gte}-01-01"
        if self.year_lte:
            params[f"{date_field}.lte"] = f"{self.year_lte}-12-31"
        if self.language:
            params["with_original_language"] = self.language
        elif self.anime:
            params["with_original_language"] = "ja"
        return params

def _year_range(prompt: str, this_year: int) -> Tuple[Optional[int], Optional[int]]:
    m = re.search(r"(?:from\s+)?(\d{4})\s*(?:to|-)\s*(\d{4})", prompt)
    if m:
        return int(m.group(1)), int(m.group(2))
    m = re.search(r"(?:from|after|since)\s+(\d{4})", prompt)
    if m:
        return int(m.group(1)), None
    m = re.search(r"(?:before|until|up to)\s+(\d{4})", prompt)
    if m:
        return None, int(m.group(1))
    m = re.search(r"\b(\d{2})s\b", prompt)
    if m:
        decade = int(m.group(1))
        if 50 <= decade <= 90:
            return 1900 + decade, 1900 + decade + 9
        if 0 <= decade <= 20:
            return 2000 + decade, min(2000 + decade + 9, this_year)
    if re.search(r"\b(recent|new|latest|modern|current)\b", prompt):
        return this_year - 3, None
    if re.search(r"\b(classic|old|vintage|retro|golden age)\b", prompt):
        return None, 1999
    return None, None

def _quality(prompt: str, intent: Intent) -> None:
    if re.search(r"\b(best|top|highly\s+rated|acclaimed|award.?winning|masterpiece)\b", prompt):
        intent.vote_average = 8.0
        intent.sort_by = "vote_average.desc"
    if re.search(r"\b(good|great|excellent|quality)\b", prompt) and not intent.vote_average:
        intent.vote_average = 7.5
    if re.search(r"\b(underrated|hidden\s+gems?|overlooked|lesser.?known|obscure)\b", prompt):
        intent.vote_average = 7.0
        intent.sort_by = "vote_average.desc"
    if re.search(r"\b(popular|trending|mainstream|blockbuster|hit)\b", prompt):
        intent.sort_by = "popularity.desc"

def parse_user_intent(prompt: str, content_types: Optional[Sequence[str]] = None, today: Optional[date] = None) -> Intent:
    lower = prompt.lower()
    words = re.split(r"\s+", lower)
    intent = Intent()

    if content_types:
        if "tv" in content_types and "movie" not in content_types:
            intent.media_type = "tv"
        elif "movie" in content_types and "tv" not in content_types:
            intent.media_type = "movie"
        if "anime" in content_types:
            intent.anime = True

    for word in words:
        if word in TV_KEYWORDS:
            intent.media_type = "tv"
        elif word in MOVIE_KEYWORDS:
            intent.media_type = "movie"

    if any(k in lower for k in ANIME_KEYWORDS):
        intent.anime = True
    if intent.anime:
        intent.keywords.append("anime")
        if 16 not in intent.genres:
            intent.genres.append(16)

    for keyword, genre_ids in GENRE_KEYWORDS.items():
        if keyword in lower:
            for gid in genre_ids:
                if gid not in intent.genres:
                    intent.genres.append(gid)
            if keyword not in intent.keywords:
                intent.keywords.append(keyword)

    for mood, keywords in MOOD_KEYWORDS.items():
        if any(k in lower for k in keywords):
            intent.mood = mood
            break

    for keyword, lang in LANGUAGE_KEYWORDS.items():
        if keyword in lower:
            intent.language = lang
            break

    intent.year_gte, intent.year_lte = _year_range(lower, (today or date.today()).year)
    _quality(lower, intent)
    return intent

def reason_for(intent: Intent, item: Mapping[str, Any], this_year: Optional[int] = None) -> str:
    """
    Short human-readable justification for a discover hit.
    """
    this_year = this_year or date.today().year
    reasons: List[str] = []
    if intent.keywords:
        reasons.append(f"Matches your interest in {' and '.join(intent.keywords[:2])}")
    if intent.mood:
        reasons.append(f"Perfect for a {intent.mood} mood")

    vote = float(item.get("vote_average") or 0.0)
    if vote >= 8.5:
        reasons.append("exceptional ratings")
    elif vote >= 8:
        reasons.append("critically acclaimed")
    elif vote >= 7.5:
        reasons.append("highly rated")

    released = item.get("release_date") or item.get("first_air_date") or ""
    if len(released) >= 4 and released[:4].isdigit():
        year = int(released[:4])
        if intent.year_lte and year <= intent.year_lte and year < 2000:
            reasons.append("beloved classic")
        elif year >= this_year - 2:
            reasons.append("recent release")

    return " - ".join(reasons) or "Popular choice based on your preferences"
