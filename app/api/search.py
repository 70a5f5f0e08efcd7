import asyncio
import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.api.deps import get_container
from app.core.container import AppContainer
from app.core.errors import error_payload
from app.models.search import SearchRequest, SearchResponse, SearchState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["search"])


def _state_frame(state: SearchState, image_base_url: str) -> dict[str, Any]:
    return {"type": "state", **SearchResponse.from_state(state, image_base_url).model_dump(mode="json")}


def _read_message(raw: str) -> dict[str, Any]:
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return {"query": raw}
    if isinstance(message, dict):
        return message
    return {"query": raw}


@router.post("/search", response_model=SearchResponse)
async def search_movies(payload: SearchRequest, container: AppContainer = Depends(get_container)) -> SearchResponse:
    query = container.guardrails.validate_query(payload.query)
    started = time.perf_counter()
    state = await container.new_resolver().resolve(query)
    latency_ms = int((time.perf_counter() - started) * 1000)
    return SearchResponse.from_state(state, container.settings.tmdb_image_base_url, latency_ms=latency_ms)


@router.websocket("/search/live")
async def live_search(websocket: WebSocket, container: AppContainer = Depends(get_container)) -> None:
    await websocket.accept()
    image_base_url = container.settings.tmdb_image_base_url
    resolver = container.new_resolver()
    debouncer = container.new_debouncer()
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    resolver.subscribe(lambda state: outbox.put_nowait(_state_frame(state, image_base_url)))
    debouncer.on_settled(resolver.resolve)

    async def _send_frames() -> None:
        while True:
            frame = await outbox.get()
            await websocket.send_json(frame)

    sender = asyncio.create_task(_send_frames())
    try:
        while True:
            message = _read_message(await websocket.receive_text())
            if message.get("action") == "clear":
                debouncer.cancel()
                resolver.clear()
                continue

            inspection = container.guardrails.inspect_text(str(message.get("query") or ""))
            if not inspection.allowed:
                outbox.put_nowait(
                    {"type": "error", **error_payload(inspection.code or "guardrail_blocked", inspection.reason or "")}
                )
                continue
            debouncer.push(inspection.text)
    except WebSocketDisconnect:
        logger.debug("Live search client disconnected")
    finally:
        await debouncer.close()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
