import httpx
import pytest

from app.core.errors import FallbackTransportError
from app.core.settings import Settings
from app.services.llm_service import GenerativeFallbackClient


@pytest.mark.asyncio
async def test_openai_primary_then_gemini_fallback(monkeypatch) -> None:
    settings = Settings(
        environment="test",
        generation_provider="openai",
        openai_api_key="openai",
        gemini_api_key="gemini",
    )
    client = GenerativeFallbackClient(settings)

    async def _fail_openai(_query: str) -> str:
        raise httpx.ConnectError("openai down")

    async def _ok_gemini(_query: str) -> str:
        return '[{"title": "Gemini Pick"}]'

    monkeypatch.setattr(client, "_openai_generate", _fail_openai)
    monkeypatch.setattr(client, "_gemini_generate", _ok_gemini)

    assert await client.generate("obscure short") == '[{"title": "Gemini Pick"}]'
    await client.close()


@pytest.mark.asyncio
async def test_gemini_preferred_when_configured(monkeypatch) -> None:
    settings = Settings(
        environment="test",
        generation_provider="gemini",
        openai_api_key="openai",
        gemini_api_key="gemini",
    )
    client = GenerativeFallbackClient(settings)
    called: list[str] = []

    async def _openai(_query: str) -> str:
        called.append("openai")
        return "[]"

    async def _gemini(_query: str) -> str:
        called.append("gemini")
        return "[]"

    monkeypatch.setattr(client, "_openai_generate", _openai)
    monkeypatch.setattr(client, "_gemini_generate", _gemini)

    await client.generate("obscure short")
    assert called == ["gemini"]
    await client.close()


@pytest.mark.asyncio
async def test_all_providers_failing_raises_transport_error(monkeypatch) -> None:
    settings = Settings(environment="test", openai_api_key="openai", gemini_api_key=None)
    client = GenerativeFallbackClient(settings)

    async def _empty_openai(_query: str) -> str:
        raise ValueError("Empty OpenAI text")

    monkeypatch.setattr(client, "_openai_generate", _empty_openai)

    with pytest.raises(FallbackTransportError):
        await client.generate("obscure short")
    await client.close()


@pytest.mark.asyncio
async def test_no_configured_provider_raises_transport_error() -> None:
    client = GenerativeFallbackClient(Settings(environment="test", openai_api_key=None, gemini_api_key=None))

    assert client.available is False
    with pytest.raises(FallbackTransportError):
        await client.generate("obscure short")
    await client.close()


@pytest.mark.asyncio
async def test_openai_chat_completion_text_is_returned() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": ' [{"title": "Primer"}] '}}]})

    settings = Settings(environment="test", openai_api_key="openai", gemini_api_key=None)
    client = GenerativeFallbackClient(settings, transport=httpx.MockTransport(_handler))
    try:
        text = await client.generate("time travel garage film")
    finally:
        await client.close()

    assert text == '[{"title": "Primer"}]'
    assert seen[0].headers["Authorization"] == "Bearer openai"
    assert b"time travel garage film" in seen[0].content
