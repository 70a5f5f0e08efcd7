import asyncio
import logging
from typing import Any

import httpx

from app.core.errors import APIError
from app.core.settings import Settings
from app.models.movie import MovieSummary
from app.services.normalizer import normalize_tmdb_result

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class TMDBClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        headers = {"Accept": "application/json"}
        if settings.tmdb_access_token:
            headers["Authorization"] = f"Bearer {settings.tmdb_access_token}"
        self._client = httpx.AsyncClient(
            base_url=settings.tmdb_base_url,
            timeout=settings.tmdb_timeout_seconds,
            headers=headers,
            transport=transport,
        )
        self._min_interval_seconds = 1.0 / max(settings.tmdb_requests_per_second, 0.5)
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        await self._client.aclose()

    async def _throttle(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            elapsed = loop.time() - self._last_request_time
            if elapsed < self._min_interval_seconds:
                await asyncio.sleep(self._min_interval_seconds - elapsed)
            self._last_request_time = loop.time()

    async def _request(self, method: str, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.settings.tmdb_api_key and not self.settings.tmdb_access_token:
            raise APIError("config_error", "TMDB_API_KEY or TMDB_ACCESS_TOKEN must be set", status_code=500)

        merged_params: dict[str, Any] = {"language": self.settings.tmdb_language}
        if self.settings.tmdb_api_key and not self.settings.tmdb_access_token:
            merged_params["api_key"] = self.settings.tmdb_api_key
        if params:
            merged_params.update(params)

        attempts = self.settings.tmdb_max_retries
        backoff_seconds = 0.6
        for attempt in range(1, attempts + 1):
            await self._throttle()
            try:
                response = await self._client.request(method, path, params=merged_params)
            except httpx.TransportError as exc:
                if attempt < attempts:
                    await asyncio.sleep(backoff_seconds)
                    backoff_seconds *= 2
                    continue
                raise APIError(
                    "tmdb_upstream_unavailable",
                    "TMDB upstream is temporarily unavailable",
                    status_code=502,
                    details={"path": path, "error_type": exc.__class__.__name__},
                ) from exc

            if response.status_code < 400:
                return response.json()

            if response.status_code in _RETRYABLE_STATUS and attempt < attempts:
                await asyncio.sleep(backoff_seconds)
                backoff_seconds *= 2
                continue

            if response.status_code == 401:
                raise APIError("tmdb_auth_error", "TMDB credentials are invalid", status_code=502)
            if response.status_code == 404:
                raise APIError("tmdb_not_found", "TMDB resource not found", status_code=404, details={"path": path})

            raise APIError(
                "tmdb_request_failed",
                "TMDB request failed",
                status_code=502,
                details={"path": path, "status_code": response.status_code, "response": response.text[:200]},
            )

        raise APIError("tmdb_request_failed", "TMDB request retries exhausted", status_code=502)

    async def search(self, query: str, page_size: int) -> dict[str, list[MovieSummary]]:
        payload = await self._request(
            "GET",
            "/search/movie",
            params={
                "query": query,
                "page": 1,
                "include_adult": str(self.settings.tmdb_include_adult).lower(),
            },
        )

        movies: list[MovieSummary] = []
        for item in payload.get("results") or []:
            movie = normalize_tmdb_result(item) if isinstance(item, dict) else None
            if movie is not None:
                movies.append(movie)
            if len(movies) >= page_size:
                break

        logger.debug(
            "TMDB search completed",
            extra={"query": query, "count": len(movies), "total_results": payload.get("total_results")},
        )
        return {"results": movies}

    async def fetch_movie_details(self, movie_id: int) -> MovieSummary:
        payload = await self._request("GET", f"/movie/{movie_id}")
        movie = normalize_tmdb_result(payload)
        if movie is None:
            raise APIError(
                "tmdb_request_failed",
                "TMDB returned an unreadable movie payload",
                status_code=502,
                details={"movie_id": movie_id},
            )
        return movie
