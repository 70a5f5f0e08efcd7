from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from app.models.movie import MovieOrigin, MovieSummary


class SearchStatus(str, Enum):
    IDLE = "idle"
    SEARCHING_PRIMARY = "searching_primary"
    SEARCHING_FALLBACK = "searching_fallback"
    RESOLVED = "resolved"
    FAILED = "failed"


class SearchErrorKind(str, Enum):
    PRIMARY_TRANSPORT = "primary-transport-error"
    FALLBACK_TRANSPORT = "fallback-transport-error"
    FALLBACK_PARSE = "fallback-parse-error"


@dataclass(frozen=True)
class CacheEntry:
    query: str
    results: tuple[MovieSummary, ...]
    origin: MovieOrigin
    timestamp: float


@dataclass(frozen=True)
class SearchState:
    """Snapshot of what the UI should render for one query."""

    query: str = ""
    status: SearchStatus = SearchStatus.IDLE
    results: tuple[MovieSummary, ...] = field(default_factory=tuple)
    error_kind: SearchErrorKind | None = None
    origin: MovieOrigin | None = None
    cache_hit: bool = False

    @property
    def is_loading(self) -> bool:
        return self.status in {SearchStatus.SEARCHING_PRIMARY, SearchStatus.SEARCHING_FALLBACK}


class MovieResult(BaseModel):
    id: int
    title: str
    overview: str
    release_date: str | None
    release_year: int | None
    rating: float
    formatted_rating: str
    rating_class: str
    poster_url: str | None

    @classmethod
    def from_summary(cls, movie: MovieSummary, image_base_url: str, poster_size: str = "w92") -> "MovieResult":
        return cls(
            id=movie.id,
            title=movie.title,
            overview=movie.overview,
            release_date=movie.release_date,
            release_year=movie.release_year,
            rating=movie.rating,
            formatted_rating=f"{movie.rating:.1f}",
            rating_class=movie.rating_class,
            poster_url=movie.poster_url(image_base_url, poster_size),
        )


class SearchRequest(BaseModel):
    query: str = Field(max_length=1000)


class SearchResponseMeta(BaseModel):
    cache_hit: bool
    latency_ms: int | None = None


class SearchResponse(BaseModel):
    query: str
    status: SearchStatus
    results: list[MovieResult]
    error_kind: SearchErrorKind | None = None
    meta: SearchResponseMeta

    @classmethod
    def from_state(cls, state: SearchState, image_base_url: str, latency_ms: int | None = None) -> "SearchResponse":
        return cls(
            query=state.query,
            status=state.status,
            results=[MovieResult.from_summary(movie, image_base_url) for movie in state.results],
            error_kind=state.error_kind,
            meta=SearchResponseMeta(cache_hit=state.cache_hit, latency_ms=latency_ms),
        )
