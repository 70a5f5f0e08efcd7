from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MovieOrigin = Literal["primary", "fallback"]


class MovieSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str = Field(min_length=1)
    release_date: str | None = None
    poster_path: str | None = None
    rating: float = 0.0
    overview: str = ""
    origin: MovieOrigin = "primary"

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, value: object) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return max(0.0, min(float(value), 10.0))

    @property
    def release_year(self) -> int | None:
        if self.release_date and len(self.release_date) >= 4 and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None

    @property
    def rating_class(self) -> str:
        if self.rating >= 8.5:
            return "excellent"
        if self.rating >= 7.0:
            return "good"
        if self.rating >= 5.0:
            return "average"
        return "poor"

    def poster_url(self, image_base_url: str, size: str = "w500") -> str | None:
        if not self.poster_path:
            return None
        return f"{image_base_url.rstrip('/')}/{size}{self.poster_path}"
