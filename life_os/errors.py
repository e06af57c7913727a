"""
Exception hierarchy for the life engine.

Inside a cycle, outcomes travel as result variants (see cycle_result.py).
These exceptions are reserved for configuration, persistence, and
programmer errors against the goal manager API.
"""


class LifeOSError(Exception):
    """Base class for engine errors."""


class ConfigError(LifeOSError):
    """Configuration file or override is invalid."""


class PersistenceError(LifeOSError):
    """An atomic write could not be completed."""

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to persist {path}: {cause}")


class CycleTimeout(LifeOSError):
    """The whole cycle exceeded its deadline."""


class GatherFailed(LifeOSError):
    """The gather-context step timed out or failed; the cycle cannot continue."""


class InvalidHoldReason(LifeOSError, ValueError):
    """A hold reason outside the closed set was supplied."""


class UnknownTaskError(LifeOSError, KeyError):
    """No task with the given id exists for the current goal."""


class UnknownGoalError(LifeOSError, KeyError):
    """No goal with the given id is known to the goal manager."""
