"""
Shared Pydantic response models for the observer API.

These models give FastAPI the type information it needs to generate
accurate OpenAPI schemas instead of empty `schema: {}`.

Usage:
    from api.response_models import EngineStatusResponse, ListResponse

    @router.get("/endpoint", response_model=EngineStatusResponse)
    async def my_endpoint(): ...
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== Health Check ====


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(description="healthy or error")
    timestamp: str = Field(description="ISO timestamp")
    engine_running: bool = Field(description="Whether a cycle is in progress")


# ==== List Envelope ====
# Shape: {items, total}


class ListResponse(BaseModel):
    """Standard list endpoint response."""

    items: list[Any] = Field(default_factory=list, description="Result items")
    total: int = Field(description="Total count")


# ==== Engine ====


class ErrorRecovery(BaseModel):
    consecutive_failures: int = 0
    backoff_ms: int = 0
    persistence_failures: int = 0
    dropped_ticks: int = 0
    skipped_ticks: int = 0
    last_error: str | None = None


class EngineStatusResponse(BaseModel):
    """Observer snapshot of the scheduler."""

    running: bool = Field(description="A cycle is in progress")
    started: bool = Field(description="The recurring loop is active")
    current_step: str | None = None
    step_duration: float = Field(0.0, description="Seconds in the current step")
    cycle_count: int = 0
    last_cycle: str | None = None
    coverage: int | None = Field(None, description="Weighted data coverage 0-100")
    ready: bool = Field(False, description="Coverage gate reached")
    missing: list[dict[str, Any]] = Field(default_factory=list)
    optimization_started: bool = False
    area_scores: dict[str, Any] = Field(default_factory=dict)
    insights: list[dict[str, Any]] = Field(default_factory=list)
    pending_actions: list[dict[str, Any]] = Field(default_factory=list)
    completed_actions: list[dict[str, Any]] = Field(default_factory=list)
    pending_questions: list[dict[str, Any]] = Field(default_factory=list)
    error_recovery: ErrorRecovery
    goals: dict[str, Any] = Field(default_factory=dict)
    heartbeat: dict[str, Any] = Field(default_factory=dict)


class AbortResponse(BaseModel):
    """Result of an abort request."""

    aborted: bool = Field(description="True if a running cycle was cancelled")
    cycle: int | None = Field(None, description="Cycle number that was running")


# ==== Events ====


class EventHistoryResponse(BaseModel):
    status: str = "ok"
    data: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    computed_at: str
