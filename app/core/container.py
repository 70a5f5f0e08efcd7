import logging

from app.core.settings import Settings
from app.services.debouncer import QueryDebouncer
from app.services.guardrails import QueryGuardrails
from app.services.llm_service import GenerativeFallbackClient
from app.services.result_cache import ResultCache
from app.services.search_resolver import SearchResolver
from app.services.tmdb_client import TMDBClient

logger = logging.getLogger(__name__)


class AppContainer:
    def __init__(self, settings: Settings):
        self.settings = settings

        self.tmdb_client = TMDBClient(settings)
        self.fallback_client = GenerativeFallbackClient(settings)
        self.guardrails = QueryGuardrails(settings)
        # one cache for every session, so any caller's paid-for work is reused
        self.result_cache = ResultCache(
            ttl_seconds=settings.search_cache_ttl_seconds,
            max_entries=settings.search_cache_max_entries,
        )

        logger.info(
            "App container initialized",
            extra={
                "tmdb_base_url": settings.tmdb_base_url,
                "tmdb_auth": "bearer" if settings.tmdb_access_token else "api_key",
                "generation_provider": settings.generation_provider,
                "generation_model_openai": settings.openai_generation_model,
                "generation_model_gemini": settings.gemini_generation_model,
                "generative_fallback_enabled": settings.enable_generative_fallback,
                "generative_fallback_available": self.fallback_client.available,
                "search_min_query_chars": settings.search_min_query_chars,
                "search_page_size": settings.search_page_size,
                "search_debounce_ms": settings.search_debounce_ms,
                "search_cache_ttl_seconds": settings.search_cache_ttl_seconds,
                "search_cache_max_entries": settings.search_cache_max_entries,
            },
        )

    def new_resolver(self) -> SearchResolver:
        return SearchResolver(
            settings=self.settings,
            primary_client=self.tmdb_client,
            fallback_client=self.fallback_client,
            cache=self.result_cache,
        )

    def new_debouncer(self) -> QueryDebouncer:
        return QueryDebouncer(delay_seconds=self.settings.search_debounce_ms / 1000)

    async def close(self) -> None:
        await self.tmdb_client.close()
        await self.fallback_client.close()
