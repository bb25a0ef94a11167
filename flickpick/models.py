from __future__ import annotations
from typing import List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

MediaKind = Literal["movie", "tv", "anime", "animation"]
MediaType = Literal["movie", "tv"]

class Recommendation(BaseModel):
    """
    Single suggested title. `id` is the TMDB id when the provider knows it,
    otherwise a stable slug built from type, title and year.
    """
    model_config = ConfigDict(frozen=True)

    id: Union[int, str]
    title: str = Field(min_length=1)
    media_type: MediaKind = "movie"
    reason: str = ""
    year: Optional[int] = None
    poster_path: Optional[str] = None

class RecommendationResult(BaseModel):
    """
    Outcome of one resolution: results in relevance order plus who answered.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    results: Tuple[Recommendation, ...] = ()
    provider: str
    is_fallback: bool = Field(default=False, alias="isFallback")

class DiscoverResponse(BaseModel):
    """
    Envelope returned by the mood, discover and blend endpoints.
    """
    results: List[Recommendation]
    provider: str
    is_fallback: bool = Field(alias="isFallback")
    prompt: str

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [{
                "results": [
                    {"id": "movie-paddington-2-2017", "title": "Paddington 2", "media_type": "movie",
                     "reason": "Gentle, warm and funny", "year": 2017},
                ],
                "provider": "groq",
                "isFallback": False,
                "prompt": "Cozy Night In",
            }]
        },
    )

class ErrorResponse(BaseModel):
    error: str
    code: Literal["INVALID_INPUT", "AI_ERROR", "RATE_LIMITED", "TMDB_ERROR"]
    details: Optional[str] = None

ContentKind = Literal["movie", "tv", "animation", "anime"]

class DiscoverRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=3, max_length=500)
    content_types: Optional[List[ContentKind]] = Field(default=None, alias="contentTypes")
    exclude_ids: Optional[List[int]] = Field(default=None, alias="excludeIds")

class BlendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    titles: List[str] = Field(min_length=2, max_length=5)
    exclude_ids: Optional[List[int]] = Field(default=None, alias="excludeIds")

# Personalized recommendations (watchlist driven)

class WatchlistItem(BaseModel):
    id: int
    title: str
    media_type: MediaType
    content_type: Optional[ContentKind] = None
    poster_path: Optional[str] = None
    genre_ids: List[int] = Field(default_factory=list)
    added_at: Optional[str] = None

class RecommendationsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    watchlist_items: List[WatchlistItem] = Field(default_factory=list, alias="watchlistItems")
    exclude_ids: List[int] = Field(default_factory=list, alias="excludeIds")

class ContentItem(BaseModel):
    id: int
    title: str
    media_type: MediaType
    poster_path: Optional[str] = None
    vote_average: float = 0.0
    year: Optional[int] = None
    genre_ids: List[int] = Field(default_factory=list)

class BecauseYouLiked(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_item: WatchlistItem = Field(alias="sourceItem")
    recommendations: List[ContentItem]

class GenreRecommendations(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    genre_name: str = Field(alias="genreName")
    genre_id: int = Field(alias="genreId")
    recommendations: List[ContentItem]
    type: MediaType

class RecommendationsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    because_you_liked: Optional[BecauseYouLiked] = Field(default=None, alias="becauseYouLiked")
    top_genres: List[GenreRecommendations] = Field(default_factory=list, alias="topGenres")
