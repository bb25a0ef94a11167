from __future__ import annotations
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Centralized, typed configuration (12-factor).
    Values are read from environment and the .env file.
    """
    app_name: str = "FlickPick Recommendations API"
    log_level: str = "INFO"
    request_timeout_s: float = 15.0

    # Metadata provider (TMDB)
    tmdb_api_base: str = "https://api.themoviedb.org/3"
    tmdb_v3_key: Optional[str] = None        # sent as ?api_key=
    tmdb_bearer_token: Optional[str] = None  # v4 read token, preferred when both are set
    tmdb_language: str = "en-US"

    # AI providers
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.3-70b-versatile"
    groq_timeout_s: float = 45.0
    deepseek_api_key: Optional[str] = None
    deepseek_model: str = "deepseek-chat"
    deepseek_timeout_s: float = 45.0
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout_s: float = 30.0
    tastedive_api_key: Optional[str] = None
    tastedive_api_base: str = "https://tastedive.com/api/similar"
    tastedive_timeout_s: float = 15.0
    tastedive_hourly_quota: int = 300
    tmdb_fallback_timeout_s: float = 20.0

    # Fallback chain, highest priority first
    provider_order: List[str] = ["groq", "deepseek", "gemini", "tastedive", "tmdb"]
    provider_retry_attempts: int = 3
    provider_retry_initial_wait_s: float = 0.5
    provider_retry_max_wait_s: float = 3.0
    provider_rate_limit_cooldown_s: int = 60

    # Cache store
    redis_url: Optional[str] = None          # memory store when unset
    redis_socket_timeout_s: float = 5.0
    memory_cache_maxsize: int = 1024
    mood_cache_ttl_s: int = 86400
    discover_cache_ttl_s: int = 43200
    blend_cache_ttl_s: int = 86400

    # Per-client limits on the AI endpoints
    discover_rate_limit: int = 10
    discover_rate_window_s: int = 60

    model_config = SettingsConfigDict(
        env_prefix="FLICKPICK_",   # reads FLICKPICK_GROQ_API_KEY, etc.
        env_file="flickpick.env",
        extra="ignore",
    )

settings: Settings = Settings()
