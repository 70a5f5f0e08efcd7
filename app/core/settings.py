from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Movie Search Resolver"
    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"

    tmdb_api_key: str | None = None
    # v4 read access token, sent as a bearer header when present
    tmdb_access_token: str | None = None
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_image_base_url: str = "https://image.tmdb.org/t/p"
    tmdb_language: str = "en-US"
    tmdb_include_adult: bool = False
    tmdb_timeout_seconds: float = 10.0
    # 1 means a single attempt, retries are the caller's decision
    tmdb_max_retries: int = Field(default=1, ge=1, le=5)
    tmdb_requests_per_second: float = 10.0

    generation_provider: Literal["openai", "gemini"] = "openai"
    openai_api_key: str | None = None
    openai_generation_model: str = "gpt-4.1-mini"
    gemini_api_key: str | None = None
    gemini_generation_model: str = "gemini-2.5-flash"
    enable_generative_fallback: bool = True
    fallback_max_movies: int = Field(default=8, ge=1, le=20)

    search_min_query_chars: int = Field(default=2, ge=1)
    search_max_query_chars: int = Field(default=100, ge=2)
    search_page_size: int = Field(default=8, ge=1, le=20)
    search_debounce_ms: int = Field(default=300, ge=0)
    primary_timeout_seconds: float = Field(default=10.0, gt=0)
    fallback_timeout_seconds: float = Field(default=10.0, gt=0)
    # None keeps entries for the lifetime of the process
    search_cache_ttl_seconds: float | None = Field(default=None, gt=0)
    # 0 means unbounded
    search_cache_max_entries: int = Field(default=0, ge=0)

    rate_limit_per_minute: int = 100
    rate_limit_window_seconds: int = 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
