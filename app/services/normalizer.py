import re
import zlib
from typing import Any

from app.models.movie import MovieSummary

_WHITESPACE = re.compile(r"\s+")
_DATE_PREFIX = re.compile(r"^\d{4}(-\d{2}(-\d{2})?)?")


def _safe_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _rating(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(_safe_str(value))
    except ValueError:
        return 0.0


def _release_date(value: Any) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    match = _DATE_PREFIX.match(_safe_str(value))
    return match.group(0) if match else None


def clean_query(text: str) -> str:
    return _WHITESPACE.sub(" ", text.strip())


def normalize_query(text: str) -> str:
    return clean_query(text).lower()


def generated_movie_id(title: str, release_date: str | None) -> int:
    # negative so it never collides with a catalogue id
    digest = zlib.crc32(f"{title.lower()}|{release_date or ''}".encode("utf-8"))
    return -(digest or 1)


def normalize_tmdb_result(item: dict[str, Any]) -> MovieSummary | None:
    movie_id = item.get("id")
    title = _safe_str(item.get("title"))
    if not isinstance(movie_id, int) or isinstance(movie_id, bool) or not title:
        return None

    return MovieSummary(
        id=movie_id,
        title=title,
        release_date=_release_date(item.get("release_date")),
        poster_path=_safe_str(item.get("poster_path")) or None,
        rating=_rating(item.get("vote_average")),
        overview=_safe_str(item.get("overview")),
        origin="primary",
    )


def normalize_generated_movie(item: Any) -> MovieSummary | None:
    if not isinstance(item, dict):
        return None
    title = _safe_str(item.get("title") or item.get("name"))
    if not title:
        return None

    release_date = _release_date(item.get("release_date") or item.get("year"))
    rating = item.get("rating")
    if rating is None:
        rating = item.get("vote_average")

    return MovieSummary(
        id=generated_movie_id(title, release_date),
        title=title,
        release_date=release_date,
        # generated records have no real artwork
        poster_path=None,
        rating=_rating(rating),
        overview=_safe_str(item.get("overview") or item.get("description")),
        origin="fallback",
    )


def normalize_generated_movies(items: list[Any], limit: int) -> list[MovieSummary]:
    movies: list[MovieSummary] = []
    seen: set[int] = set()
    for item in items:
        movie = normalize_generated_movie(item)
        if movie is None or movie.id in seen:
            continue
        seen.add(movie.id)
        movies.append(movie)
        if len(movies) >= limit:
            break
    return movies
