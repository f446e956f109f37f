"""
Exception taxonomy for the allocation engine.

Recoverable shortfalls never raise; they end up as activity status
(Partial, Skipped, Warning). Everything here aborts the simulation run.
"""

from typing import Optional


class AllocationError(Exception):
    """Base error. Carries the qualified name of the activity involved, if known."""

    def __init__(self, message: str, activity_name: Optional[str] = None):
        self.activity_name = activity_name
        if activity_name:
            message = f"[a={activity_name}] {message}"
        super().__init__(message)


class ConfigurationError(AllocationError):
    """
    Setup or code error: request without an owner, unsupported companion,
    missing identifier labels, companion metric read before it was set.
    """


class ShortfallError(AllocationError):
    """A real shortfall remained for an activity set to ReportErrorAndStop."""
