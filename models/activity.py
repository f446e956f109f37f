"""
Activity status and policy models for the Resource Allocation Engine.

This module defines the vocabulary every activity speaks each timestep:
1. Status (what happened to the activity this step)
2. Policy (what to do when resources fall short)
3. Reporting records (what gets passed to listeners)
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import date as date_type


class ActivityStatus(str, Enum):
    """Outcome of an activity for the current timestep."""
    IGNORED = "Ignored"         # Disabled or not due
    NOT_NEEDED = "NotNeeded"    # Prepared, nothing requested yet
    SUCCESS = "Success"
    PARTIAL = "Partial"         # Ran with less than it asked for
    WARNING = "Warning"
    SKIPPED = "Skipped"
    CRITICAL = "Critical"       # Shortfall with ReportErrorAndStop
    TIMER = "Timer"             # Reporting-only, used for due timers


class ShortfallPolicy(str, Enum):
    """Action taken when required > available after transmutation."""
    USE_AVAILABLE_RESOURCES = "UseAvailableResources"
    USE_AVAILABLE_WITH_IMPLICATIONS = "UseAvailableWithImplications"
    SKIP_ACTIVITY = "SkipActivity"
    REPORT_ERROR_AND_STOP = "ReportErrorAndStop"

    @property
    def allows_partial(self) -> bool:
        """Can the activity proceed with whatever is available?"""
        return self in (
            ShortfallPolicy.USE_AVAILABLE_RESOURCES,
            ShortfallPolicy.USE_AVAILABLE_WITH_IMPLICATIONS,
        )


class AllocationStyle(str, Enum):
    """Who triggers the resource protocol for an activity."""
    AUTOMATIC = "Automatic"     # Driven by the timestep
    MANUAL = "Manual"           # Parent calls manage_resources_and_tasks()


class ActivityPerformed(BaseModel):
    """Record sent to the performed listener after each timestep."""
    name: str = Field(min_length=1, description="Name of the activity or timer")
    status: ActivityStatus
    id: str = Field(description="Unique id of the reporting component")
    date: Optional[date_type] = Field(default=None, description="Timestep the record belongs to")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Pay hired labour",
            "status": "Partial",
            "id": "7c1e5a0b-5f0e-4a8e-a7a2-22d1d52f0f0e",
            "date": "2025-03-01"
        }
    })


class ShortfallRecord(BaseModel):
    """
    Summary of a single unmet resource request.
    Built from a ResourceRequest at the time the shortfall is reported.
    """
    activity_name: str
    resource_type: Optional[str] = Field(default=None, description="Resource group, None if untracked")
    resource_type_name: str = Field(default="", description="Specific pool item")
    required: float = Field(ge=0)
    available: float = Field(ge=0)
    policy: ShortfallPolicy
    in_market: bool = Field(default=False, description="Resource is owned by a market")
    companion: Optional[str] = Field(default=None, description="Companion component that asked")
    date: Optional[date_type] = None

    @property
    def deficit(self) -> float:
        return max(0.0, self.required - self.available)
