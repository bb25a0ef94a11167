from __future__ import annotations
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated, Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .ai.base import ProviderAdapter
from .ai.deepseek import DeepSeekProvider
from .ai.gemini import GeminiProvider
from .ai.groq import GroqProvider
from .ai.resolver import FallbackResolver
from .ai.tastedive import TasteDiveProvider
from .ai.tmdb_fallback import TMDBFallbackProvider
from .cache.orchestrator import CacheAside
from .cache.store import CacheStore, build_cache_store
from .clients.tmdb import TMDBClient
from .config import Settings, settings
from .errors import AllProvidersExhausted, InvalidInput, RateLimitExceeded, TMDBError
from .models import (
    BlendRequest,
    DiscoverRequest,
    DiscoverResponse,
    ErrorResponse,
    RecommendationResult,
    RecommendationsRequest,
    RecommendationsResponse,
)
from .services.personalized import PersonalizedService
from .services.rate_limit import RateLimiter, client_ip
from .services.recommendation_service import RecommendationService
from .utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Components:
    """Process-scoped collaborators, built once at startup."""
    store: CacheStore
    resolver: FallbackResolver
    recommendations: RecommendationService
    personalized: PersonalizedService
    limiter: RateLimiter
    config: Settings


def build_providers(config: Settings, tmdb: TMDBClient, store: Optional[CacheStore] = None) -> List[ProviderAdapter]:
    registry = {
        "groq": lambda: GroqProvider(config),
        "deepseek": lambda: DeepSeekProvider(config),
        "gemini": lambda: GeminiProvider(config),
        "tastedive": lambda: TasteDiveProvider(tmdb, config, store),
        "tmdb": lambda: TMDBFallbackProvider(tmdb, config),
    }
    providers: List[ProviderAdapter] = []
    for name in config.provider_order:
        factory = registry.get(name.lower())
        if factory is None:
            logger.warning("Unknown provider %r in provider_order, ignoring", name)
            continue
        providers.append(factory())
    return providers


def build_components(config: Settings) -> Components:
    store = build_cache_store(config)
    tmdb = TMDBClient(config)
    resolver = FallbackResolver(
        build_providers(config, tmdb, store),
        store=store,
        retry_attempts=config.provider_retry_attempts,
        retry_initial_wait=config.provider_retry_initial_wait_s,
        retry_max_wait=config.provider_retry_max_wait_s,
        rate_limit_cooldown=config.provider_rate_limit_cooldown_s,
    )
    cache: CacheAside[RecommendationResult] = CacheAside(store, RecommendationResult)
    return Components(
        store=store,
        resolver=resolver,
        recommendations=RecommendationService(resolver, cache, config),
        personalized=PersonalizedService(tmdb),
        limiter=RateLimiter(store, config.discover_rate_limit, config.discover_rate_window_s),
        config=config,
    )


def get_components(request: Request) -> Components:
    return request.app.state.components


ComponentsDep = Annotated[Components, Depends(get_components)]


def _error(status: int, error: str, code: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, details=details)  # type: ignore[arg-type]
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def create_app(components: Optional[Components] = None, config: Optional[Settings] = None) -> FastAPI:
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the resolver, cache and services once and close the store on shutdown."""
        built = components or build_components(config)
        app.state.components = built
        logger.info("Provider chain: %s", ", ".join(p.name for p in built.resolver.providers))
        try:
            yield
        finally:
            await built.store.close()

    app = FastAPI(title=config.app_name, version="0.1.0", lifespan=lifespan)

    @app.exception_handler(InvalidInput)
    async def _invalid_input(_: Request, exc: InvalidInput) -> JSONResponse:
        return _error(400, exc.message, "INVALID_INPUT", exc.details)

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(_: Request, exc: RequestValidationError) -> JSONResponse:
        details = ", ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())[1:])}: {err.get('msg')}" for err in exc.errors()
        )
        return _error(400, "Invalid request", "INVALID_INPUT", details)

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limited(_: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error(429, "Too many requests. Please wait a moment and try again.", "RATE_LIMITED")

    @app.exception_handler(AllProvidersExhausted)
    async def _exhausted(_: Request, exc: AllProvidersExhausted) -> JSONResponse:
        return _error(500, "Failed to generate recommendations. Please try again.", "AI_ERROR", str(exc))

    @app.exception_handler(TMDBError)
    async def _tmdb(_: Request, exc: TMDBError) -> JSONResponse:
        return _error(503, "Could not fetch content details. Please try again.", "TMDB_ERROR", str(exc))

    @app.get("/health")
    def health() -> Dict[str, str]:
        """Simple liveness check."""
        return {"status": "ok"}

    @app.get("/mood/{slug}", response_model=DiscoverResponse,
             responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def mood(slug: Annotated[str, Path(max_length=64)], c: ComponentsDep) -> DiscoverResponse:
        """Curated mood recommendations (cached for a day)."""
        return await c.recommendations.mood(slug)

    @app.post("/discover", response_model=DiscoverResponse,
              responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def discover(body: DiscoverRequest, request: Request, c: ComponentsDep) -> DiscoverResponse:
        """Free-text AI discovery."""
        await c.limiter.check(client_ip(request.headers, request.client.host if request.client else None), "discover")
        return await c.recommendations.discover(body.prompt, body.content_types, body.exclude_ids)

    @app.post("/blend", response_model=DiscoverResponse,
              responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def blend(body: BlendRequest, request: Request, c: ComponentsDep) -> DiscoverResponse:
        await c.limiter.check(client_ip(request.headers, request.client.host if request.client else None), "blend")
        return await c.recommendations.blend(body.titles, body.exclude_ids)

    @app.post("/recommendations", response_model=RecommendationsResponse,
              responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
    async def recommendations(body: RecommendationsRequest, c: ComponentsDep) -> RecommendationsResponse:
        """Watchlist-driven groups: because-you-liked and top genres."""
        return await c.personalized.recommend(body.watchlist_items, body.exclude_ids)

    @app.get("/_debug/config")
    def debug_config(c: ComponentsDep) -> Dict[str, Any]:
        """Debug endpoint to show current configuration (no secrets)."""
        cfg = c.config
        return {
            "provider_order": cfg.provider_order,
            "groq_api_key_present": bool(cfg.groq_api_key),
            "groq_model": cfg.groq_model,
            "deepseek_api_key_present": bool(cfg.deepseek_api_key),
            "deepseek_model": cfg.deepseek_model,
            "gemini_api_key_present": bool(cfg.gemini_api_key),
            "gemini_model": cfg.gemini_model,
            "tastedive_api_key_present": bool(cfg.tastedive_api_key),
            "tmdb_credentials_present": bool(cfg.tmdb_v3_key or cfg.tmdb_bearer_token),
            "cache_backend": "redis" if cfg.redis_url else "memory",
            "mood_cache_ttl_s": cfg.mood_cache_ttl_s,
            "discover_cache_ttl_s": cfg.discover_cache_ttl_s,
        }

    @app.get("/_debug/providers")
    async def debug_providers(c: ComponentsDep) -> List[Dict[str, object]]:
        return await c.resolver.statuses()

    @app.delete("/_debug/cache/{key:path}", status_code=204)
    async def debug_invalidate(key: str, c: ComponentsDep) -> None:
        await c.recommendations.cache.invalidate(key)

    return app


app: FastAPI = create_app()
