"""
Activity tree holder and timestep driver.

The ActivitiesHolder owns the root activities of one zone (or market),
links them to their resources and drives each timestep:
reset -> protocol for every automatic activity (depth first) -> status report.
"""

import logging
from datetime import date as date_type
from typing import Iterable, List, Optional, Protocol

from models import ActivityPerformed, ActivityStatus, ResourceRequest, ShortfallRecord
from .activity import Activity
from .labour import LabourAllocator
from .resources import ResourcesHolder

logger = logging.getLogger(__name__)


class ShortfallListener(Protocol):
    def report_shortfall(self, record: ShortfallRecord) -> None:
        ...


class PerformedListener(Protocol):
    def report_performed(self, record: ActivityPerformed) -> None:
        ...


def add_months(date: date_type, months: int) -> date_type:
    """First of the month, 'months' after 'date'."""
    total = date.year * 12 + (date.month - 1) + months
    return date_type(total // 12, total % 12 + 1, 1)


class ActivitiesHolder:
    """
    Root of an activity tree.

    Traversal order is fixed (depth first, declaration order) and activities
    are processed one at a time. The labour last-request markers rely on this:
    no two activities may run the protocol concurrently.
    """

    def __init__(
        self,
        resources: ResourcesHolder,
        activities: Optional[List[Activity]] = None,
        name: str = "Activities",
        farm_multiplier: float = 1.0
    ):
        self.name = name
        self.resources = resources
        resources.activities_holder = self
        self.farm_multiplier = farm_multiplier
        self.labour_allocator = LabourAllocator()
        self.current_date: Optional[date_type] = None

        self.activities: List[Activity] = []
        self.shortfall_listeners: List[ShortfallListener] = []
        self.performed_listeners: List[PerformedListener] = []

        for activity in activities or []:
            self.add_activity(activity)

    def add_activity(self, activity: Activity) -> Activity:
        activity.attach(self)
        self.activities.append(activity)
        return activity

    def add_listener(self, listener) -> None:
        """Register an object for shortfall and/or performed reports."""
        if hasattr(listener, "report_shortfall"):
            self.shortfall_listeners.append(listener)
        if hasattr(listener, "report_performed"):
            self.performed_listeners.append(listener)

    def all_activities(self) -> Iterable[Activity]:
        for activity in self.activities:
            yield from activity.walk()

    def find(self, qualified_name: str) -> Optional[Activity]:
        for activity in self.all_activities():
            if activity.qualified_name == qualified_name:
                return activity
        return None

    # --- Simulation ---

    def start_of_simulation(self) -> None:
        for activity in self.all_activities():
            activity.start_of_simulation()
        logger.info(f"{self.name}: {sum(1 for _ in self.all_activities())} activities ready")

    def step(self, date: date_type) -> None:
        """Run one timestep. A ShortfallError aborts the run."""
        self.current_date = date
        activities = list(self.all_activities())

        for activity in activities:
            activity.reset_for_timestep()
        for person in self.resources.labour or []:
            person.clear_claims()

        for activity in activities:
            activity.on_timestep()

        for activity in self.activities:
            activity.report_activity_status()

    def run(self, start: date_type, months: int) -> None:
        """Monthly timesteps from the month of 'start'."""
        self.start_of_simulation()
        for offset in range(months):
            date = add_months(start, offset)
            logger.info(f"--- Timestep {date.isoformat()} ---")
            self.step(date)

    # --- Reporting ---

    def report_activity_performed(self, name: str, status: ActivityStatus, id: str) -> None:
        record = ActivityPerformed(name=name, status=status, id=id, date=self.current_date)
        for listener in self.performed_listeners:
            listener.report_performed(record)

    def report_activity_shortfall(self, request: ResourceRequest, activity: Activity) -> None:
        owner = request.activity_model
        record = ShortfallRecord(
            activity_name=activity.qualified_name,
            resource_type=request.resource_type.value if request.resource_type else None,
            resource_type_name=request.resource_type_name or (request.resource.full_name if request.resource else ""),
            required=request.required,
            available=request.available,
            policy=owner.policy,
            in_market=bool(request.resource is not None and request.resource.in_market),
            companion=request.companion_model_details.type if request.companion_model_details else None,
            date=self.current_date,
        )
        logger.info(
            f"Shortfall in {record.activity_name}: {record.resource_type_name or record.resource_type} "
            f"{record.available:.2f} of {record.required:.2f}"
        )
        for listener in self.shortfall_listeners:
            listener.report_shortfall(record)
