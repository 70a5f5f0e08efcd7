import json
import re
from collections.abc import Callable
from typing import Any

from app.core.errors import FallbackParseError

_FENCED_BLOCK = re.compile(r"```(?:[a-zA-Z]+)?\s*(.*?)```", flags=re.DOTALL)
_LIST_KEYS = ("movies", "results", "items")


def _as_movie_list(payload: Any) -> list[Any] | None:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
        if "title" in payload:
            return [payload]
    return None


def _loads(text: str) -> list[Any] | None:
    try:
        return _as_movie_list(json.loads(text))
    except json.JSONDecodeError:
        return None


def parse_strict_json(text: str) -> list[Any] | None:
    return _loads(text.strip())


def parse_fenced_block(text: str) -> list[Any] | None:
    for block in _FENCED_BLOCK.findall(text):
        movies = _loads(block.strip())
        if movies is not None:
            return movies
    return None


def parse_embedded_json(text: str) -> list[Any] | None:
    """Find the first balanced JSON value inside prose.

    Each ``[`` or ``{`` is tried in order with ``raw_decode``, so only a value that
    closes counts. An array that fails to decode ends the search: the objects
    inside a cut-off array must not be read as a shorter answer.
    """
    decoder = json.JSONDecoder()
    index = 0
    while True:
        starts = [pos for pos in (text.find("[", index), text.find("{", index)) if pos != -1]
        if not starts:
            return None
        start = min(starts)
        try:
            payload, end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            if text[start] == "[":
                return None
            index = start + 1
            continue
        movies = _as_movie_list(payload)
        if movies is not None:
            return movies
        index = end


PARSE_STRATEGIES: tuple[tuple[str, Callable[[str], list[Any] | None]], ...] = (
    ("strict_json", parse_strict_json),
    ("fenced_block", parse_fenced_block),
    ("embedded_json", parse_embedded_json),
)


def parse_generated_movies(raw_text: str) -> tuple[list[Any], str]:
    """Read generated text as a list of movie dicts.

    Strategies run in order and the first that yields a list wins. Returns the
    raw items plus the name of the strategy that matched.
    """
    if not raw_text or not raw_text.strip():
        raise FallbackParseError("Generated text is empty")

    for name, strategy in PARSE_STRATEGIES:
        movies = strategy(raw_text)
        if movies is not None:
            return movies, name

    raise FallbackParseError("No movie list found in generated text")
