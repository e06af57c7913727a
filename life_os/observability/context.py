"""
Cycle context management with context variables.
"""

import contextvars
import uuid
from typing import Optional

# Context variable for the running cycle id; each asyncio task inherits a copy
_cycle_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "cycle_id", default=None
)


def get_cycle_id() -> Optional[str]:
    """Get the current cycle ID from context."""
    return _cycle_id_var.get()


def set_cycle_id(cycle_id: str) -> contextvars.Token:
    """Set the cycle ID in context. Returns token for reset."""
    return _cycle_id_var.set(cycle_id)


def generate_cycle_id(cycle_number: int | None = None) -> str:
    """Generate a new cycle ID."""
    suffix = uuid.uuid4().hex[:8]
    if cycle_number is None:
        return f"cyc-{suffix}"
    return f"cyc-{cycle_number}-{suffix}"


class CycleContext:
    """
    Context manager for cycle-scoped operations.

    Usage:
        with CycleContext(cycle_number=12) as ctx:
            logger.info("Step started")  # carries cycle_id in JSON logs
    """

    def __init__(self, cycle_id: Optional[str] = None, cycle_number: int | None = None):
        self.cycle_id = cycle_id or generate_cycle_id(cycle_number)
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "CycleContext":
        self._token = set_cycle_id(self.cycle_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _cycle_id_var.reset(self._token)
