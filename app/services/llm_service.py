import json
import logging

import httpx

from app.core.errors import FallbackTransportError
from app.core.settings import Settings

logger = logging.getLogger(__name__)

_INSTRUCTION = (
    "You are a movie catalogue. Suggest real or highly plausible movies matching the search text. "
    "Return ONLY a JSON array with at most {limit} objects, each with keys: "
    "title (str), release_date (YYYY-MM-DD or YYYY), overview (one sentence), rating (0-10 number). "
    "Return [] when nothing plausibly matches."
)


class GenerativeFallbackClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._client = httpx.AsyncClient(timeout=settings.fallback_timeout_seconds, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def available(self) -> bool:
        return bool(self.settings.openai_api_key or self.settings.gemini_api_key)

    def _provider_order(self) -> list[str]:
        if self.settings.generation_provider == "gemini":
            return ["gemini", "openai"]
        return ["openai", "gemini"]

    def _prompt(self, query: str) -> dict[str, str | int]:
        return {
            "instruction": _INSTRUCTION.format(limit=self.settings.fallback_max_movies),
            "query": query,
        }

    async def _openai_generate(self, query: str) -> str:
        headers = {"Authorization": f"Bearer {self.settings.openai_api_key}"}
        model = self.settings.openai_generation_model
        prompt = self._prompt(query)
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": prompt["instruction"]},
                {"role": "user", "content": json.dumps({"query": prompt["query"]})},
            ],
            "temperature": 0.3,
        }
        if model.lower().startswith("gpt-5"):
            payload["max_completion_tokens"] = 900
        else:
            payload["max_tokens"] = 900

        response = await self._client.post("https://api.openai.com/v1/chat/completions", headers=headers, json=payload)
        response.raise_for_status()
        data = response.json()
        choices = data.get("choices", [])
        if not choices:
            raise ValueError("No OpenAI choices returned")
        content = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not content:
            raise ValueError("Empty OpenAI text")
        return content

    async def _gemini_generate(self, query: str) -> str:
        url = f"https://generativelanguage.googleapis.com/v1beta/models/{self.settings.gemini_generation_model}:generateContent"
        params = {"key": self.settings.gemini_api_key}
        payload = {
            "contents": [{"parts": [{"text": json.dumps(self._prompt(query))}]}],
            "generationConfig": {"temperature": 0.3, "maxOutputTokens": 900},
        }
        response = await self._client.post(url, params=params, json=payload)
        response.raise_for_status()
        data = response.json()
        candidates = data.get("candidates", [])
        if not candidates:
            raise ValueError("No Gemini candidates returned")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise ValueError("Empty Gemini text")
        return text

    async def generate(self, query: str) -> str:
        """Ask the configured providers, in preference order, for movies matching ``query``.

        Returns the raw model text. Raises FallbackTransportError once every
        configured provider has failed.
        """
        failures: list[str] = []
        for provider in self._provider_order():
            if provider == "openai" and self.settings.openai_api_key:
                call = self._openai_generate
            elif provider == "gemini" and self.settings.gemini_api_key:
                call = self._gemini_generate
            else:
                continue
            try:
                return await call(query)
            except (httpx.HTTPError, ValueError) as exc:
                failures.append(f"{provider}:{exc.__class__.__name__}")
                logger.warning(
                    "Generative provider failed",
                    extra={"provider": provider, "error_type": exc.__class__.__name__},
                )

        if not failures:
            raise FallbackTransportError("No generative provider is configured")
        raise FallbackTransportError(f"All generative providers failed: {', '.join(failures)}")
