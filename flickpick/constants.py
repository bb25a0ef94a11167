from __future__ import annotations
from typing import Dict, List, NamedTuple

class Mood(NamedTuple):
    slug: str
    name: str
    description: str

MOODS: List[Mood] = [
    Mood("cozy", "Cozy Night In", "Warm, comforting content perfect for relaxing"),
    Mood("thrilling", "Edge of Your Seat", "Heart-pounding action and suspense"),
    Mood("mind-bending", "Mind-Bending", "Complex plots that make you think"),
    Mood("feel-good", "Feel-Good", "Uplifting stories to brighten your day"),
    Mood("dark", "Dark & Gritty", "Intense, mature storytelling"),
    Mood("romantic", "Romantic", "Love stories that warm the heart"),
    Mood("nostalgic", "Nostalgic", "Beloved classics from years past"),
    Mood("underrated", "Hidden Gems", "Overlooked but outstanding"),
    Mood("foreign", "International Cinema", "The best from around the world"),
    Mood("binge-worthy", "Binge-Worthy", "Series you cannot stop watching"),
]

MOODS_BY_SLUG: Dict[str, Mood] = {m.slug: m for m in MOODS}

MOOD_PROMPTS: Dict[str, str] = {
    "cozy": "Warm, comforting movies and shows perfect for a cozy night in. Think heartwarming stories, gentle animation, feel-good dramas",
    "thrilling": "Heart-pounding action and suspense. Edge-of-your-seat thrillers, intense action movies, gripping crime dramas",
    "mind-bending": "Complex, thought-provoking content. Mind-bending sci-fi, psychological thrillers, movies with plot twists",
    "feel-good": "Uplifting, happy content that brightens your day. Comedies, heartwarming dramas, inspirational stories",
    "dark": "Dark, gritty, mature storytelling. Noir, dark dramas, intense crime series, morally complex characters",
    "romantic": "Love stories and romance. Romantic comedies, dramatic love stories, relationship-focused content",
    "nostalgic": "Classic films and beloved shows from years past. 80s and 90s favorites, retro content, timeless classics",
    "underrated": "Hidden gems and overlooked masterpieces. Underrated films with high ratings but less popularity",
    "foreign": "International cinema from around the world. Korean, Japanese, French, Spanish films and series",
    "binge-worthy": "TV series you cannot stop watching. Addictive dramas, engaging mysteries, compelling storylines",
}

ANIMATION_GENRE_ID: int = 16

MOVIE_GENRES: Dict[int, str] = {
    28: "Action", 12: "Adventure", 16: "Animation", 35: "Comedy", 80: "Crime",
    99: "Documentary", 18: "Drama", 10751: "Family", 14: "Fantasy", 36: "History",
    27: "Horror", 10402: "Music", 9648: "Mystery", 10749: "Romance",
    878: "Science Fiction", 10770: "TV Movie", 53: "Thriller", 10752: "War", 37: "Western",
}

TV_GENRES: Dict[int, str] = {
    10759: "Action & Adventure", 16: "Animation", 35: "Comedy", 80: "Crime",
    99: "Documentary", 18: "Drama", 10751: "Family", 10762: "Kids", 9648: "Mystery",
    10763: "News", 10764: "Reality", 10765: "Sci-Fi & Fantasy", 10766: "Soap",
    10767: "Talk", 10768: "War & Politics", 37: "Western",
}

# free-text keyword -> TMDB genre ids, used by the heuristic fallback provider
GENRE_KEYWORDS: Dict[str, List[int]] = {
    "scary": [27], "horror": [27], "terrifying": [27], "creepy": [27],
    "funny": [35], "comedy": [35], "hilarious": [35],
    "romantic": [10749], "love": [10749],
    "action": [28], "exciting": [28, 53],
    "thriller": [53], "suspense": [53], "suspenseful": [53], "tense": [53],
    "sad": [18], "emotional": [18], "drama": [18], "dramatic": [18],
    "animated": [16], "cartoon": [16], "kids": [16, 10751],
    "family": [10751], "family-friendly": [10751],
    "documentary": [99],
    "sci-fi": [878], "science fiction": [878], "scifi": [878], "space": [878],
    "fantasy": [14], "magical": [14],
    "mystery": [9648],
    "crime": [80], "detective": [80, 9648],
    "war": [10752],
    "western": [37], "cowboy": [37],
    "musical": [10402],
    "history": [36], "historical": [36],
    "adventure": [12], "epic": [12, 14],
}

CONTENT_TYPES: List[str] = ["movie", "tv", "animation", "anime"]
