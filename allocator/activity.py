"""
The Activity protocol state machine.

This module implements the per-timestep resource protocol every activity follows:
1. Gate - enabled, and every timer on this activity and its ancestors is due.
2. Prepare - reset to NotNeeded, let companions prepare.
3. Request - own requests plus companion requests driven by the parent's metrics.
4. Check - resolve availability, try transmutation, apply the shortfall policy.
5. Adjust - behaviour hook between check and reporting.
6. Report shortfalls - notify listeners, enforce ReportErrorAndStop.
7. Take - commit what is allowed from the pools.
8. Perform - run the behaviour's tasks, then each companion's.
"""

import logging
from datetime import date as date_type
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable
from uuid import UUID, uuid4

from models import (
    ActivityStatus,
    AllocationStyle,
    LabourRequirement,
    ResourceGroup,
    ResourceRequest,
    ShortfallPolicy,
    is_greater_than,
    is_negative,
    is_positive,
)
from .behaviour import ActivityBehaviour
from .companions import (
    CompanionComponent,
    CompanionKind,
    CompanionModelRegistry,
    CompanionValueKey,
    LabourRequirementCompanion,
)
from .errors import ConfigurationError, ShortfallError
from .labour import LabourAllocator

logger = logging.getLogger(__name__)


@runtime_checkable
class ReportsPartialResourceAction(Protocol):
    """Anything that can own a ResourceRequest: it has a policy and a status."""
    name: str
    policy: ShortfallPolicy
    status: ActivityStatus


class Activity:
    """
    A schedulable unit of work that consumes resources once per timestep.

    Activities form a tree. Disabling an activity disables its whole subtree,
    and timers anywhere on the path to the root must all be due for an
    activity to run.
    """

    def __init__(
        self,
        name: str,
        behaviour: Optional[ActivityBehaviour] = None,
        policy: ShortfallPolicy = ShortfallPolicy.USE_AVAILABLE_RESOURCES,
        allocation_style: AllocationStyle = AllocationStyle.AUTOMATIC,
        children: Optional[List["Activity"]] = None,
        companions: Optional[List[CompanionComponent]] = None,
        timers: Optional[list] = None,
        transaction_category: str = "",
        enabled: bool = True
    ):
        self.id = str(uuid4())
        self.name = name
        self.behaviour = behaviour or ActivityBehaviour()
        self.policy = policy
        self.allocation_style = allocation_style
        self.transaction_category = transaction_category or name

        self.parent: Optional["Activity"] = None
        self.holder = None
        self.children: List["Activity"] = []
        self.companions: List[CompanionComponent] = []
        self.timers: list = list(timers or [])

        # Per timestep state
        self.status = ActivityStatus.IGNORED
        self.resource_request_list: List[ResourceRequest] = []
        self.companion_values: Dict[CompanionValueKey, Optional[float]] = {}
        self.status_messages: List[str] = []
        self.warnings: List[str] = []

        self.registry = CompanionModelRegistry(self)
        self._enabled = enabled

        for child in children or []:
            self.add_child(child)
        for companion in companions or []:
            self.add_companion(companion)

    def __repr__(self) -> str:
        return f"Activity(name={self.name!r}, status={self.status.value})"

    # --- Tree ---

    def add_child(self, child: "Activity") -> "Activity":
        child.parent = self
        if self.holder is not None:
            child.attach(self.holder)
        if not self._enabled:
            child.enabled = False
        self.children.append(child)
        return child

    def add_companion(self, companion: CompanionComponent) -> CompanionComponent:
        companion.parent = self
        self.companions.append(companion)
        return companion

    def attach(self, holder) -> None:
        """Link this subtree to the holder that drives it."""
        self.holder = holder
        for child in self.children:
            child.attach(holder)

    def walk(self) -> Iterable["Activity"]:
        """This activity and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    @property
    def qualified_name(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.qualified_name}.{self.name}"

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value != self._enabled:
            for child in self.children:
                child.enabled = value
        self._enabled = value

    @property
    def resources(self):
        return self.holder.resources if self.holder is not None else None

    @property
    def labour_allocator(self) -> LabourAllocator:
        if self.holder is not None:
            return self.holder.labour_allocator
        return LabourAllocator()

    @property
    def farm_multiplier(self) -> float:
        if self.holder is None:
            return 1.0
        return self.holder.farm_multiplier

    @property
    def allows_partial(self) -> bool:
        return self.policy.allows_partial

    @property
    def current_date(self) -> Optional[date_type]:
        return self.holder.current_date if self.holder is not None else None

    # --- Timing ---

    def timing_ok(self, date: Optional[date_type] = None) -> bool:
        """
        True when enabled and every timer on this activity and its ancestors
        is due. No timers means always due.
        """
        if not self.enabled:
            return False
        date = date or self.current_date
        not_due = 0
        current = self
        while current is not None:
            for timer in current.timers:
                if date is None or not timer.activity_due(date):
                    not_due += 1
            current = current.parent
        return not_due == 0

    @property
    def timing_exists(self) -> bool:
        current = self
        while current is not None:
            if current.timers:
                return True
            current = current.parent
        return False

    # --- Simulation lifecycle ---

    def start_of_simulation(self) -> None:
        """Locate companions and check their labels against this activity."""
        self.companion_values.clear()
        self.registry.build(self.companions)
        self.registry.validate()

    def reset_for_timestep(self) -> None:
        self.resource_request_list = []
        self.companion_values = {key: None for key in self.registry.slots}
        for companion in self.companions:
            companion.status = ActivityStatus.IGNORED
        self.status = ActivityStatus.IGNORED
        self.status_messages.clear()

    def on_timestep(self) -> None:
        """Timestep trigger. Manual activities wait for their parent instead."""
        if self.allocation_style != AllocationStyle.MANUAL:
            self.manage_resources_and_tasks()

    # --- Messages ---

    def add_status_message(self, message: str) -> None:
        self.status_messages.append(message)

    def warn(self, message: str) -> None:
        """Advisory warning, logged once per activity."""
        if message in self.warnings:
            return
        self.warnings.append(message)
        logger.warning(message)

    # --- Companion values ---

    def set_companion_value(self, kind, identifier: str, measure: str, value: Optional[float]) -> None:
        kind_name = kind.value if isinstance(kind, CompanionKind) else str(kind)
        key = (kind_name, identifier or "", measure or "")
        if key not in self.companion_values and self.registry.locate(key) is None:
            raise ConfigurationError(
                f"No companion [{kind_name}]-[{identifier or 'BLANK'}]-[{measure or 'BLANK'}] is located for this activity",
                self.qualified_name,
            )
        self.companion_values[key] = value

    def value_for_companion_model(self, component: CompanionComponent) -> float:
        """Metric the parent calculated for this companion this timestep."""
        key = self.registry.value_key(component)
        value = self.companion_values.get(key)
        if value is None:
            raise ConfigurationError(
                f"Units for [{key[0]}]-[{key[1] or 'BLANK'}]-[{key[2] or 'BLANK'}] have not been calculated before this request",
                self.qualified_name,
            )
        return value

    def companion_models_by_identifier(
        self,
        kind: CompanionKind,
        identifier: str = "",
        must_be_provided: bool = False,
        add_new_if_empty: bool = False
    ) -> Optional[List[CompanionComponent]]:
        return self.registry.by_identifier(kind, identifier, must_be_provided, add_new_if_empty)

    def find_labour_requirement(self) -> Optional[LabourRequirement]:
        for companion in self.companions:
            if isinstance(companion, LabourRequirementCompanion):
                return companion.requirement
        return None

    def new_request(self, **kwargs) -> ResourceRequest:
        """ResourceRequest owned by this activity."""
        kwargs.setdefault("category", self.transaction_category)
        return ResourceRequest(activity_model=self, **kwargs)

    # --- Protocol ---

    def manage_resources_and_tasks(self, identifier: str = "") -> None:
        """
        Run the full timestep protocol. Also how a parent runs a Manual child.
        'identifier' limits the companions involved to those with that
        identifier (blank means all).
        """
        if not self.enabled:
            self.status = ActivityStatus.IGNORED
            return
        if not self.timing_ok():
            return

        self.prepare_for_timestep()
        companions = self.registry.components(identifier)
        for companion in companions:
            companion.prepare_for_timestep()

        requests = self.behaviour.request_resources(self)
        if requests:
            self.resource_request_list.extend(requests)

        for companion in companions:
            if not self.registry.has_value_for(companion):
                continue
            metric = self.value_for_companion_model(companion)
            if not is_positive(metric):
                continue
            for request in companion.request_resources(metric):
                if request.activity_model is None:
                    request.activity_model = companion
                request.companion_model_details = companion.details
                self.resource_request_list.append(request)

        self.check_resources(self.resource_request_list, uuid4())
        self.adjust_resources_for_timestep()

        if self.report_shortfalls(self.resource_request_list, uuid4()):
            return

        if self.take_resources(self.resource_request_list, False) or not self.resource_request_list:
            self.perform_tasks_for_timestep()

            for companion in companions:
                if not self.registry.has_value_for(companion):
                    continue
                metric = self.value_for_companion_model(companion)
                if is_negative(metric):
                    # Parent flagged a problem rather than a deficit
                    companion.status = ActivityStatus.WARNING
                    self.add_status_message(f"[{companion.name}] not performed: parent reported a problem")
                elif is_positive(metric) and companion.status != ActivityStatus.SKIPPED:
                    companion.perform_tasks(metric)

            self.set_status_success_or_partial()

    def prepare_for_timestep(self) -> None:
        self.status = ActivityStatus.NOT_NEEDED
        self.behaviour.prepare_for_timestep(self)

    def adjust_resources_for_timestep(self) -> None:
        self.behaviour.adjust_resources(self)

    def perform_tasks_for_timestep(self) -> None:
        self.behaviour.perform_tasks(self)

    def check_resources(self, requests: List[ResourceRequest], batch_id: Optional[UUID] = None) -> bool:
        """
        Resolve how much of each request is available and try transmutation
        for any shortfall. Returns False if the activity is skipped.
        Does not change any pool unless a deep transmutation succeeds.
        """
        if not requests:
            self.status = ActivityStatus.NOT_NEEDED
            return True

        self._validate_owners(requests)
        batch_id = batch_id or uuid4()

        for request in requests:
            request.activity_id = batch_id
            request.available = 0.0
            pool = self._find_pool(request)
            if pool is None:
                # Untracked resources never limit the simulation
                request.available = request.required
                request.provided = request.required
            elif request.resource_type == ResourceGroup.LABOUR:
                request.available = self.labour_allocator.check(
                    request, self, pool, request.activity_model.policy.allows_partial
                )
            else:
                request.available = self._take_non_labour(request, commit=False)
            logger.debug(f"{self.qualified_name}: {request.resource_type_name or request.resource_type} available {request.available:.2f} of {request.required:.2f}")

        shortfalls = [r for r in requests if r.is_short]
        if shortfalls:
            self.resources.transmute_shortfall(shortfalls)

        for request in shortfalls:
            owner = request.activity_model
            if owner.policy == ShortfallPolicy.SKIP_ACTIVITY:
                owner.status = ActivityStatus.SKIPPED

        # Shortfalls that count: owner still running and no transmutation on offer
        remaining = [
            r for r in requests
            if r.is_short and r.activity_model.status != ActivityStatus.SKIPPED
        ]
        unresolved = [r for r in remaining if not (r.allow_transmutation and r.transmutation_possible)]
        if unresolved:
            if self.policy == ShortfallPolicy.REPORT_ERROR_AND_STOP:
                for request in unresolved:
                    self._notify_shortfall(request)
                self.status = ActivityStatus.CRITICAL
                message = (
                    f"Insufficient resources for [a={self.qualified_name}] with [Report error and stop] "
                    f"selected as action when shortfall of resources for the activity"
                )
                logger.error(message)
                raise ShortfallError(message, self.qualified_name)
            if self.policy == ShortfallPolicy.SKIP_ACTIVITY:
                self.status = ActivityStatus.SKIPPED

        if remaining and self.status != ActivityStatus.SKIPPED:
            self.resources.transmute_shortfall(remaining, deep_search=True)
            # Pools may have been topped up
            for request in requests:
                if request.resource is not None:
                    request.available = min(request.resource.amount, request.required)

        return self.status != ActivityStatus.SKIPPED

    def implication_shortfalls(self) -> List[ResourceRequest]:
        return [
            r for r in self.resource_request_list
            if r.is_short and r.activity_model.policy == ShortfallPolicy.USE_AVAILABLE_WITH_IMPLICATIONS
        ]

    def minimum_shortfall_proportion(self) -> float:
        """
        Smallest available/required proportion among short
        UseAvailableWithImplications requests (1.0 when there are none).
        Nothing is changed.
        """
        shortfalls = self.implication_shortfalls()
        if not shortfalls:
            return 1.0
        return min(r.proportion_available for r in shortfalls)

    def scale_to_shortfall_proportion(self) -> float:
        """
        Reduce every request to the minimum shortfall proportion so that
        outcomes follow the scarcest UseAvailableWithImplications resource.
        Returns the proportion applied.
        """
        proportion = self.minimum_shortfall_proportion()
        if proportion >= 1.0:
            return proportion
        for request in self.resource_request_list:
            if is_greater_than(request.proportion_available, proportion):
                request.required *= proportion
                request.available = min(request.available, request.required)
        return proportion

    def report_shortfalls(self, requests: List[ResourceRequest], batch_id: Optional[UUID] = None) -> bool:
        """
        Notify listeners of every request still short and set the status.
        Raises ShortfallError for any owner set to ReportErrorAndStop.
        Returns True if the activity was skipped.
        """
        component_error = False
        for request in requests:
            if not is_positive(request.required - request.available):
                continue
            owner = request.activity_model
            if owner.policy == ShortfallPolicy.REPORT_ERROR_AND_STOP:
                owner.status = ActivityStatus.CRITICAL
                in_text = f" in [a={self.qualified_name}]" if owner is not self else ""
                logger.error(
                    f"Insufficient [r={request.resource_type_name or request.resource_type}] from [a={owner.name}]{in_text}. "
                    f"[Report error and stop] is selected as action when shortfall of resources"
                )
                component_error = True

            self._notify_shortfall(request)

            if self.status != ActivityStatus.SKIPPED and owner.policy != ShortfallPolicy.SKIP_ACTIVITY:
                self.status = ActivityStatus.PARTIAL

        if component_error:
            self.status = ActivityStatus.CRITICAL
            raise ShortfallError(
                f"Insufficient resources for components of [a={self.qualified_name}] with "
                f"[Report error and stop] selected as action when shortfall of resources",
                self.qualified_name,
            )
        return self.status == ActivityStatus.SKIPPED

    def take_resources(self, requests: List[ResourceRequest], trigger_event: bool = False) -> bool:
        """
        Commit the requests. Short requests whose owner does not accept
        partial resources are dropped first. Returns True if tasks may run.
        """
        if not requests:
            return False

        self._validate_owners(requests)
        requests[:] = [
            r for r in requests
            if not (r.is_short and not r.activity_model.policy.allows_partial)
        ]

        for request in requests:
            request.provided = 0.0
            pool = self._find_pool(request)
            if pool is None:
                request.provided = request.required
            elif request.resource_type == ResourceGroup.LABOUR:
                request.available = self.labour_allocator.take(
                    request, self, pool, request.activity_model.policy.allows_partial
                )
            else:
                request.available = self._take_non_labour(request, commit=True)

        if trigger_event:
            self.trigger_on_activity_performed()
        return self.status != ActivityStatus.IGNORED

    def set_status_success_or_partial(self, shortfall_occurred: bool = False) -> None:
        """Helper for task logic to settle the timestep status."""
        if self.status == ActivityStatus.WARNING:
            return
        if shortfall_occurred:
            if self.policy == ShortfallPolicy.REPORT_ERROR_AND_STOP:
                raise ShortfallError(
                    f"Shortfall of resources occurred in [a={self.qualified_name}]. Ensure resources are available, "
                    f"enable transmutation, or set the shortfall policy to [UseAvailableResources]",
                    self.qualified_name,
                )
            if self.status != ActivityStatus.SKIPPED:
                self.status = ActivityStatus.PARTIAL
        elif self.status == ActivityStatus.NOT_NEEDED:
            self.status = ActivityStatus.SUCCESS

    # --- Status reporting ---

    def trigger_on_activity_performed(self, status: Optional[ActivityStatus] = None) -> None:
        if status is not None:
            self.status = status
        if self.holder is not None:
            self.holder.report_activity_performed(self.name, self.status, self.id)

    def report_activity_status(self) -> None:
        """Report this activity, its due timers and then every child."""
        self.trigger_on_activity_performed()
        date = self.current_date
        for timer in self.timers:
            if date is not None and timer.activity_due(date) and self.holder is not None:
                self.holder.report_activity_performed(timer.name, ActivityStatus.TIMER, timer.id)
        for child in self.children:
            child.report_activity_status()

    # --- Internals ---

    def _validate_owners(self, requests: List[ResourceRequest]) -> None:
        if any(r.activity_model is None for r in requests):
            raise ConfigurationError("Unknown activity model in ResourceRequest", self.qualified_name)
        wrong = [r.activity_model for r in requests if not isinstance(r.activity_model, ReportsPartialResourceAction)]
        if wrong:
            names = "]&[".join(type(w).__name__ for w in wrong)
            raise ConfigurationError(f"Unsupported activity model type [{names}] in ResourceRequest", self.qualified_name)

    def _find_pool(self, request: ResourceRequest):
        if request.resource_type is None or self.resources is None:
            return None
        return self.resources.find_resource(request.resource_type)

    def _take_non_labour(self, request: ResourceRequest, commit: bool) -> float:
        if request.resource is None:
            request.resource = self.resources.find_resource_type(request)
        if request.resource is not None:
            request.available = min(request.resource.amount, request.required)
            if commit:
                request.resource.remove(request)
        return request.available

    def _notify_shortfall(self, request: ResourceRequest) -> None:
        market = self.resources.market if self.resources is not None else None
        resource = request.resource
        if resource is not None and resource.in_market and market is not None and market.activities_holder is not None:
            market.activities_holder.report_activity_shortfall(request, self)
        elif self.holder is not None:
            self.holder.report_activity_shortfall(request, self)
