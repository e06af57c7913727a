"""
Engine Router - read-only observer endpoints plus cycle abort.

The scheduler is attached to app.state by create_app(). Handlers are
async so they run on the engine's event loop and read its snapshots
between cycle steps.
"""

import logging

from fastapi import APIRouter, Query, Request

from api.response_models import AbortResponse, EngineStatusResponse, ListResponse
from life_os.scheduler import CycleScheduler

logger = logging.getLogger(__name__)

engine_router = APIRouter(tags=["Engine"])


def get_scheduler(request: Request) -> CycleScheduler:
    return request.app.state.scheduler


@engine_router.get("/status", response_model=EngineStatusResponse)
async def engine_status(request: Request):
    """Current step, coverage, scores, recent insights and error recovery."""
    return get_scheduler(request).display_data()


@engine_router.get("/insights", response_model=ListResponse)
async def engine_insights(
    request: Request,
    area: str | None = Query(None, description="Filter by life area"),
    limit: int = Query(50, ge=1, le=100),
):
    insights = get_scheduler(request).state.insights
    if area:
        insights = [i for i in insights if i.get("area") == area]
    items = insights[:limit]
    return {"items": items, "total": len(insights)}


@engine_router.get("/goals")
async def engine_goals(request: Request):
    """Current goal, criteria, task DAG, holds and recent goal history."""
    return get_scheduler(request).goals.display_data()


@engine_router.get("/heartbeat")
async def engine_heartbeat(request: Request):
    return get_scheduler(request).heartbeat.view()


@engine_router.post("/abort", response_model=AbortResponse)
async def abort_cycle(request: Request):
    """Cancel the in-flight cycle, if any."""
    scheduler = get_scheduler(request)
    cycle = scheduler.state.cycle_count + 1 if scheduler.is_running() else None
    aborted = scheduler.abort_current_cycle()
    if aborted:
        logger.warning(f"Cycle {cycle} abort requested via API")
    return {"aborted": aborted, "cycle": cycle}
