"""
Server-Sent Events (SSE) Router - real-time engine event streaming.

Every event the engine publishes (cycle-start, cycle-step,
insight-added, goal-changed, ...) is forwarded to connected clients.
A system_status keep-alive is sent every 30 seconds.

Usage in server.py:
    from api.sse_router import sse_router
    app.include_router(sse_router, prefix="/api")
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from api.response_models import EventHistoryResponse
from life_os.events import EventBus

logger = logging.getLogger(__name__)

sse_router = APIRouter(tags=["Events"])

KEEPALIVE_SECONDS = 30.0


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.scheduler.events


def _keepalive() -> str:
    data = {"status": "connected", "timestamp": datetime.now(UTC).isoformat()}
    return f"event: system_status\ndata: {json.dumps(data)}\n\n"


async def _event_generator(
    queue: asyncio.Queue, event_bus: EventBus, keepalive: float = KEEPALIVE_SECONDS
) -> AsyncGenerator[str, None]:
    """
    Generate the SSE stream.

    Emits events from the queue; when nothing arrives within `keepalive`
    seconds a system_status event is sent to keep the connection open.
    """
    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except TimeoutError:
                yield _keepalive()
                continue
            yield event.to_sse()
    except asyncio.CancelledError:
        logger.debug("SSE client disconnected")
        raise
    finally:
        event_bus.close_stream(queue)


@sse_router.get("/events/stream")
async def stream_events(request: Request) -> StreamingResponse:
    """
    Server-Sent Events endpoint for engine events.

    Keep-alive heartbeat sent every 30 seconds.
    """
    event_bus = get_event_bus(request)
    queue = event_bus.open_stream()
    return StreamingResponse(
        _event_generator(queue, event_bus),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


@sse_router.get("/events/history", response_model=EventHistoryResponse)
async def get_event_history(
    request: Request,
    limit: int = Query(100, description="Maximum events to return"),
    topic: str | None = Query(None, description="Only events of this topic"),
):
    """
    Recent event history, oldest first.

    Useful for initial state sync or when SSE is unavailable.
    """
    if limit < 1 or limit > 500:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 500")
    try:
        history = get_event_bus(request).history(topic)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Unknown topic: {topic}") from e

    events = history[-limit:]
    return {
        "status": "ok",
        "data": [event.to_dict() for event in events],
        "count": len(events),
        "computed_at": datetime.now(UTC).isoformat(),
    }
