import pytest

from app.core.errors import FallbackParseError
from app.services.fallback_parser import parse_generated_movies
from app.services.normalizer import normalize_generated_movies


def test_parses_plain_json_array() -> None:
    items, strategy = parse_generated_movies('[{"title": "Brick", "release_date": "2005-04-08", "rating": 7.2}]')

    assert strategy == "strict_json"
    assert items[0]["title"] == "Brick"


def test_parses_fenced_block_inside_prose() -> None:
    text = 'Sure! Here you go:\n```json\n{"movies": [{"title": "Primer", "year": 2004}]}\n```\nEnjoy.'

    items, strategy = parse_generated_movies(text)

    assert strategy == "fenced_block"
    assert items == [{"title": "Primer", "year": 2004}]


def test_parses_array_embedded_in_prose_without_fence() -> None:
    text = 'I found these: [{"title": "Coherence", "year": 2013}] hope that helps'

    items, strategy = parse_generated_movies(text)

    assert strategy == "embedded_json"
    assert items[0]["title"] == "Coherence"


def test_embedded_search_skips_braces_that_are_not_movie_json() -> None:
    text = 'Results {approximate}, confidence {"score": 0.4}: [{"title": "Coherence", "year": 2013}]'

    items, strategy = parse_generated_movies(text)

    assert strategy == "embedded_json"
    assert items == [{"title": "Coherence", "year": 2013}]


def test_empty_array_is_a_valid_answer() -> None:
    items, _ = parse_generated_movies("  []  ")

    assert items == []


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "I could not find anything like that.",
        '[{"title": "Cut off", "year": 20',
        '[{"title": "Alpha", "year": 2001}, {"title": "Beta", "year": 20',
        'Here you go: [{"title": "Alpha", "year": 2001}, {"title": "Beta"',
        "```json\nnot json at all\n```",
        '"just a string"',
    ],
)
def test_unreadable_text_raises_parse_error(text: str) -> None:
    with pytest.raises(FallbackParseError):
        parse_generated_movies(text)


def test_generated_records_are_normalized_to_catalogue_shape() -> None:
    items = [
        {"title": "Primer", "year": 2004, "rating": "7.9", "description": "Garage time travel."},
        {"name": "Upstream Color", "release_date": "2013-04-05", "vote_average": 12},
        {"title": "Primer", "year": 2004},
        {"overview": "no title"},
        "not a dict",
    ]

    movies = normalize_generated_movies(items, limit=8)

    assert [movie.title for movie in movies] == ["Primer", "Upstream Color"]
    assert movies[0].release_date == "2004"
    assert movies[0].rating == 7.9
    assert movies[0].overview == "Garage time travel."
    assert movies[1].rating == 10.0
    assert all(movie.origin == "fallback" and movie.id < 0 and movie.poster_path is None for movie in movies)


def test_generated_records_respect_limit() -> None:
    items = [{"title": f"Film {i}"} for i in range(12)]

    assert len(normalize_generated_movies(items, limit=5)) == 5
