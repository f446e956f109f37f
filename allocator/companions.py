"""
Companion components and the per-activity companion registry.

A companion is a pluggable child of an activity that adds its own resource
requests (or supply) to the parent's timestep. The parent hands each
companion a single metric (e.g. number of animals, hectares sown) and the
companion turns it into requests and tasks.

Only the companion kinds listed in COMPANION_LOCATORS are supported; anything
else fails at start of simulation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple
from uuid import uuid4

from models import (
    ActivityStatus,
    CompanionDetails,
    LabourRequirement,
    ResourceGroup,
    ResourceRequest,
    ShortfallPolicy,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CompanionValueKey = Tuple[str, str, str]


class CompanionKind(str, Enum):
    """Closed set of supported companion component kinds."""
    LABOUR_REQUIREMENT = "LabourRequirement"
    ACTIVITY_FEE = "ActivityFee"
    GREENHOUSE_GAS_EMISSION = "GreenhouseGasActivityEmission"


@dataclass
class CompanionLabels:
    """
    Labels a parent activity accepts for one companion kind.
    Empty lists mean the identifier (or measure) must be left blank.
    """
    identifiers: List[str] = field(default_factory=list)
    measures: List[str] = field(default_factory=list)


class CompanionComponent:
    """
    Base companion. Subclasses set 'kind' and override the three hooks.
    A companion owns its own shortfall policy and status so that requests
    it raises are judged by its settings rather than the parent's.
    """

    kind: Optional[CompanionKind] = None

    # Metric value a parent sets to say "there is a problem, do not run"
    PROBLEM_SENTINEL = -99999.0

    def __init__(
        self,
        name: str,
        identifier: str = "",
        measure: str = "",
        enabled: bool = True,
        policy: ShortfallPolicy = ShortfallPolicy.USE_AVAILABLE_RESOURCES
    ):
        self.id = str(uuid4())
        self.name = name
        self.identifier = identifier or ""
        self.measure = measure or ""
        self.enabled = enabled
        self.policy = policy
        self.status = ActivityStatus.IGNORED
        self.parent = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, identifier={self.identifier!r}, measure={self.measure!r})"

    @property
    def qualified_name(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.qualified_name}.{self.name}"

    @property
    def details(self) -> CompanionDetails:
        return CompanionDetails(self.kind.value if self.kind else type(self).__name__, self.identifier, self.measure)

    def prepare_for_timestep(self) -> None:
        self.status = ActivityStatus.NOT_NEEDED

    def request_resources(self, metric: float) -> List[ResourceRequest]:
        return []

    def perform_tasks(self, metric: float) -> None:
        if self.status == ActivityStatus.NOT_NEEDED:
            self.status = ActivityStatus.SUCCESS


class LabourRequirementCompanion(CompanionComponent):
    """Asks for metric x days_per_unit days of labour through its filter chain."""

    kind = CompanionKind.LABOUR_REQUIREMENT

    def __init__(self, requirement: Optional[LabourRequirement] = None, enabled: bool = True):
        requirement = requirement or LabourRequirement()
        super().__init__(
            name=requirement.name,
            identifier=requirement.identifier,
            measure=requirement.measure,
            enabled=enabled,
            policy=requirement.policy,
        )
        self.requirement = requirement

    def request_resources(self, metric: float) -> List[ResourceRequest]:
        days = metric * self.requirement.days_per_unit
        if days <= 0:
            return []
        return [ResourceRequest(
            resource_type=ResourceGroup.LABOUR,
            required=days,
            filter_details=[self.requirement.groups] if self.requirement.groups else [],
            category=self.name,
            activity_model=self,
        )]


class ActivityFee(CompanionComponent):
    """Charges metric x amount_per_unit to a finance account."""

    kind = CompanionKind.ACTIVITY_FEE

    def __init__(
        self,
        name: str = "Activity fee",
        amount_per_unit: float = 0.0,
        account: str = "",
        identifier: str = "",
        measure: str = "",
        enabled: bool = True,
        policy: ShortfallPolicy = ShortfallPolicy.USE_AVAILABLE_RESOURCES,
        allow_transmutation: bool = False
    ):
        super().__init__(name, identifier, measure, enabled, policy)
        if amount_per_unit < 0:
            raise ValueError("Fee per unit cannot be negative")
        self.amount_per_unit = amount_per_unit
        self.account = account
        self.allow_transmutation = allow_transmutation

    def request_resources(self, metric: float) -> List[ResourceRequest]:
        amount = metric * self.amount_per_unit
        if amount <= 0:
            return []
        return [ResourceRequest(
            resource_type=ResourceGroup.FINANCE,
            resource_type_name=self.account,
            required=amount,
            category=self.name,
            allow_transmutation=self.allow_transmutation,
            activity_model=self,
        )]


class GreenhouseGasEmission(CompanionComponent):
    """
    Supply side companion: adds metric x rate_per_unit to an emissions store
    once the parent has performed its tasks.
    """

    kind = CompanionKind.GREENHOUSE_GAS_EMISSION

    def __init__(
        self,
        name: str = "Emissions",
        rate_per_unit: float = 0.0,
        store: str = "",
        identifier: str = "",
        measure: str = "",
        enabled: bool = True
    ):
        super().__init__(name, identifier, measure, enabled)
        self.rate_per_unit = rate_per_unit
        self.store = store
        self.emitted = 0.0

    def perform_tasks(self, metric: float) -> None:
        amount = metric * self.rate_per_unit
        target = None
        if self.parent is not None and self.parent.resources is not None:
            target = self.parent.resources.find_by_full_name(self.store)
        if target is None:
            # No store tracked, emissions are not recorded
            self.status = ActivityStatus.WARNING
            return
        target.add(amount)
        self.emitted += amount
        super().perform_tasks(metric)


def locate_by_identifier(registry: "CompanionModelRegistry", kind: CompanionKind, components: List[CompanionComponent]) -> Dict[str, List[CompanionComponent]]:
    """
    Group enabled companions of one kind by identifier, limited to the
    identifiers the parent declares. When the parent declares measures for
    the kind, a metric slot is registered for each (kind, identifier, measure)
    found. Kinds without measures get a value only if the parent sets one.
    """
    labels = registry.labels_for(kind)
    if labels is None:
        raise ConfigurationError(
            f"Identifiers have not been configured for companions of type [{kind.value}]",
            registry.activity.qualified_name,
        )

    ids = list(labels.identifiers) or [""]
    located: Dict[str, List[CompanionComponent]] = {}
    for identifier in ids:
        children = [c for c in components if c.kind == kind and c.identifier == identifier and c.enabled]
        if not children:
            continue
        located[identifier] = children
        if not labels.measures:
            continue
        for child in children:
            key = registry.value_key(child)
            registry.slots.add(key)
            registry.activity.companion_values.setdefault(key, 0.0)
    return located


COMPANION_LOCATORS: Dict[CompanionKind, Callable] = {
    CompanionKind.LABOUR_REQUIREMENT: locate_by_identifier,
    CompanionKind.ACTIVITY_FEE: locate_by_identifier,
    CompanionKind.GREENHOUSE_GAS_EMISSION: locate_by_identifier,
}

COMPANION_TYPES: Dict[CompanionKind, type] = {
    CompanionKind.LABOUR_REQUIREMENT: LabourRequirementCompanion,
    CompanionKind.ACTIVITY_FEE: ActivityFee,
    CompanionKind.GREENHOUSE_GAS_EMISSION: GreenhouseGasEmission,
}


class CompanionModelRegistry:
    """
    Per-activity cache of companion labels and located companions.
    Built once at start of simulation by Activity.start_of_simulation().
    """

    def __init__(self, activity):
        self.activity = activity
        self.labels: Dict[CompanionKind, Optional[CompanionLabels]] = {}
        self.present: Dict[CompanionKind, Dict[str, List[CompanionComponent]]] = {}
        self.slots: Set[CompanionValueKey] = set()

    def labels_for(self, kind: CompanionKind) -> Optional[CompanionLabels]:
        if kind not in self.labels:
            self.labels[kind] = self.activity.behaviour.define_companion_labels(kind)
        return self.labels[kind]

    def value_key(self, component: CompanionComponent) -> CompanionValueKey:
        """Metric slot for a companion. Measure is blank for kinds that declare none."""
        labels = self.labels_for(component.kind) if component.kind in COMPANION_LOCATORS else None
        measure = component.measure if labels is not None and labels.measures else ""
        return (component.kind.value if component.kind else type(component).__name__, component.identifier, measure)

    def build(self, components: List[CompanionComponent]) -> None:
        self.present.clear()
        self.slots.clear()
        kinds: List[Optional[CompanionKind]] = []
        for component in components:
            if component.kind not in kinds:
                kinds.append(component.kind)

        for kind in kinds:
            locator = COMPANION_LOCATORS.get(kind) if kind is not None else None
            if locator is None:
                name = kind.value if kind is not None else next(type(c).__name__ for c in components if c.kind is None)
                raise ConfigurationError(
                    f"{name} not currently supported as activity companion component",
                    self.activity.qualified_name,
                )
            self.present[kind] = locator(self, kind, components)

    def has_value_for(self, component: CompanionComponent) -> bool:
        """A registered slot, or a value the parent set this timestep."""
        return self.value_key(component) in self.activity.companion_values

    def locate(self, key: CompanionValueKey) -> Optional[CompanionComponent]:
        """Located companion whose metric slot would be 'key'."""
        for component in self.components():
            if self.value_key(component) == key:
                return component
        return None

    def components(self, identifier: str = "") -> List[CompanionComponent]:
        """Located companions in declaration order, optionally limited to one identifier."""
        located = {id(c) for groups in self.present.values() for members in groups.values() for c in members}
        found = []
        for component in self.activity.companions:
            if id(component) not in located or not component.enabled:
                continue
            if identifier and component.identifier != identifier:
                continue
            found.append(component)
        return found

    def by_identifier(
        self,
        kind: CompanionKind,
        identifier: str = "",
        must_be_provided: bool = False,
        add_new_if_empty: bool = False
    ) -> Optional[List[CompanionComponent]]:
        """
        Companions of a kind with the given identifier.
        Asking for an identifier the parent never declared is a code error.
        """
        groups = self.present.get(kind)
        if groups is not None:
            if identifier in groups:
                return groups[identifier]
            labels = self.labels_for(kind)
            if labels is None or identifier not in (labels.identifiers or [""]):
                raise ConfigurationError(
                    f"[{type(self.activity.behaviour).__name__}] does not support the identifier [{identifier}]",
                    self.activity.qualified_name,
                )

        if must_be_provided:
            with_id = f"with the Identifier set as [{identifier}]" if identifier else "with the appropriate identifier"
            self.activity.warn(
                f"[a={self.activity.qualified_name}] requires at least one [{kind.value}] as a companion component {with_id}"
            )
        elif add_new_if_empty:
            return [COMPANION_TYPES[kind]()]
        return None

    def validate(self) -> List[str]:
        """
        Flag companions whose identifier or measure is not one the parent
        accepts. Problems are logged as warnings, never raised.
        """
        problems = []
        for component in self.activity.companions:
            if component.kind not in COMPANION_LOCATORS:
                continue
            labels = self.labels_for(component.kind) or CompanionLabels()

            for label_type, value, valid in (
                ("identifier", component.identifier, labels.identifiers),
                ("measure", component.measure, labels.measures),
            ):
                blank_mismatch = (value == "") == bool(valid)
                not_listed = bool(valid) and value != "" and value not in valid
                if blank_mismatch or not_listed:
                    message = (
                        f"The {label_type} [{value or 'BLANK'}] specified in [{component.name}] "
                        f"is not valid for the parent activity [a={self.activity.qualified_name}]"
                    )
                    problems.append(message)
                    self.activity.warn(message)
        return problems
