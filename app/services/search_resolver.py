import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from app.core.errors import FallbackParseError
from app.core.settings import Settings
from app.models.movie import MovieOrigin, MovieSummary
from app.models.search import CacheEntry, SearchErrorKind, SearchState, SearchStatus
from app.services.fallback_parser import parse_generated_movies
from app.services.lifecycle import RequestLifecycleGuard, ResolutionToken
from app.services.normalizer import clean_query, normalize_generated_movies, normalize_tmdb_result
from app.services.result_cache import ResultCache

logger = logging.getLogger(__name__)

StateListener = Callable[[SearchState], None]


class PrimaryCatalogue(Protocol):
    async def search(self, query: str, page_size: int) -> dict[str, Any]: ...


class FallbackGenerator(Protocol):
    async def generate(self, query: str) -> str: ...


class SearchResolver:
    """Resolves search text against the catalogue, falling back to generation.

    Cache hits answer immediately. A miss goes to the primary catalogue, and
    only a successful empty answer is handed to the generative fallback. Every
    status change is published to subscribers, but only while the attempt that
    produced it is still the latest one.
    """

    def __init__(
        self,
        settings: Settings,
        primary_client: PrimaryCatalogue,
        fallback_client: FallbackGenerator | None,
        cache: ResultCache,
        guard: RequestLifecycleGuard | None = None,
    ):
        self.settings = settings
        self.primary_client = primary_client
        self.fallback_client = fallback_client
        self.cache = cache
        self.guard = guard or RequestLifecycleGuard()
        self._state = SearchState()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SearchState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def clear(self) -> None:
        self.guard.invalidate()
        self._apply(None, SearchState())

    def _apply(self, token: ResolutionToken | None, state: SearchState) -> bool:
        if token is not None and not self.guard.is_current(token):
            logger.debug(
                "Discarded stale search state",
                extra={"query": state.query, "status": state.status.value, "generation": token.generation},
            )
            return False
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return True

    def _coerce_primary(self, items: Any) -> tuple[MovieSummary, ...]:
        movies: list[MovieSummary] = []
        for item in items or []:
            movie = item if isinstance(item, MovieSummary) else None
            if movie is None and isinstance(item, dict):
                movie = normalize_tmdb_result(item)
            if movie is not None:
                movies.append(movie)
        return tuple(movies[: self.settings.search_page_size])

    def _store(self, key: str, results: tuple[MovieSummary, ...], origin: MovieOrigin) -> None:
        self.cache.set(key, CacheEntry(query=key, results=results, origin=origin, timestamp=self.cache.now()))

    def _finish(self, token: ResolutionToken, state: SearchState, started: float) -> SearchState:
        applied = self._apply(token, state)
        logger.info(
            "Search resolved" if state.status == SearchStatus.RESOLVED else "Search failed",
            extra={
                "query": token.query,
                "status": state.status.value,
                "origin": state.origin,
                "error_kind": state.error_kind.value if state.error_kind else None,
                "result_count": len(state.results),
                "cache_hit": state.cache_hit,
                "stale": not applied,
                "latency_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return state

    async def resolve(self, query: str) -> SearchState:
        started = time.perf_counter()
        display_query = clean_query(query)
        key = display_query.lower()
        token = self.guard.begin(key)

        if len(key) < self.settings.search_min_query_chars:
            state = SearchState(query=display_query)
            self._apply(token, state)
            return state

        cached = self.cache.get(key)
        if cached is not None:
            state = SearchState(
                query=display_query,
                status=SearchStatus.RESOLVED,
                results=cached.results,
                origin=cached.origin,
                cache_hit=True,
            )
            return self._finish(token, state, started)

        self._apply(token, SearchState(query=display_query, status=SearchStatus.SEARCHING_PRIMARY))
        try:
            response = await asyncio.wait_for(
                self.primary_client.search(key, self.settings.search_page_size),
                timeout=self.settings.primary_timeout_seconds,
            )
            results = self._coerce_primary(response.get("results"))
        except Exception as exc:
            # an outage is not an empty answer, so it never reaches the fallback
            logger.warning(
                "Primary catalogue search failed",
                extra={"query": key, "error_type": exc.__class__.__name__, "error": str(exc)},
            )
            state = SearchState(
                query=display_query,
                status=SearchStatus.FAILED,
                error_kind=SearchErrorKind.PRIMARY_TRANSPORT,
            )
            return self._finish(token, state, started)

        if results or self.fallback_client is None or not self.settings.enable_generative_fallback:
            self._store(key, results, "primary")
            state = SearchState(query=display_query, status=SearchStatus.RESOLVED, results=results, origin="primary")
            return self._finish(token, state, started)

        return await self._resolve_fallback(token, display_query, key, started)

    async def _resolve_fallback(
        self,
        token: ResolutionToken,
        display_query: str,
        key: str,
        started: float,
    ) -> SearchState:
        self._apply(token, SearchState(query=display_query, status=SearchStatus.SEARCHING_FALLBACK))
        try:
            raw_text = await asyncio.wait_for(
                self.fallback_client.generate(display_query),
                timeout=self.settings.fallback_timeout_seconds,
            )
        except Exception as exc:
            logger.warning(
                "Generative fallback failed",
                extra={"query": key, "error_type": exc.__class__.__name__, "error": str(exc)},
            )
            state = SearchState(
                query=display_query,
                status=SearchStatus.FAILED,
                error_kind=SearchErrorKind.FALLBACK_TRANSPORT,
            )
            return self._finish(token, state, started)

        try:
            items, strategy = parse_generated_movies(raw_text)
            results = tuple(normalize_generated_movies(items, limit=self.settings.search_page_size))
            if items and not results:
                raise FallbackParseError("Generated list holds no movie records")
        except FallbackParseError as exc:
            logger.warning(
                "Generative fallback returned unreadable text",
                extra={"query": key, "error": str(exc), "preview": raw_text[:200]},
            )
            state = SearchState(
                query=display_query,
                status=SearchStatus.FAILED,
                error_kind=SearchErrorKind.FALLBACK_PARSE,
            )
            return self._finish(token, state, started)

        logger.debug("Parsed generated movies", extra={"query": key, "strategy": strategy, "count": len(results)})
        # a literal [] is cached too, so the generator is asked once per query
        self._store(key, results, "fallback")
        state = SearchState(query=display_query, status=SearchStatus.RESOLVED, results=results, origin="fallback")
        return self._finish(token, state, started)
