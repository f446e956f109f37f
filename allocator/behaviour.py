"""
Activity behaviours.

An Activity runs the same allocation protocol for every kind of work. What
differs (what to ask for, what to do once resources are granted) is supplied
by a behaviour object plugged into the activity.
"""

import logging
from typing import Callable, Dict, List, Optional

from models import ResourceRequest
from .companions import CompanionKind, CompanionLabels

logger = logging.getLogger(__name__)


class ActivityBehaviour:
    """
    Default behaviour: asks for nothing, does nothing, accepts companions
    with blank identifiers and measures.
    """

    def prepare_for_timestep(self, activity) -> None:
        pass

    def request_resources(self, activity) -> Optional[List[ResourceRequest]]:
        return None

    def adjust_resources(self, activity) -> None:
        """
        Called after the check phase and before shortfalls are reported.
        The default only warns when a UseAvailableWithImplications shortfall
        exists; outcomes are not scaled unless a behaviour overrides this.
        """
        if activity.minimum_shortfall_proportion() < 1.0:
            activity.warn(
                f"[a={activity.qualified_name}] does not support resource shortfalls influencing the activity outcomes. "
                f"Companion components with UseAvailableWithImplications will only apply UseAvailableResources"
            )

    def perform_tasks(self, activity) -> None:
        pass

    def define_companion_labels(self, kind: CompanionKind) -> Optional[CompanionLabels]:
        return CompanionLabels()


class CallbackBehaviour(ActivityBehaviour):
    """
    Behaviour assembled from plain callables. Each callable receives the
    activity. 'metrics' returns the companion values for this timestep as
    {(kind, identifier, measure): value}.
    """

    def __init__(
        self,
        request: Optional[Callable] = None,
        perform: Optional[Callable] = None,
        prepare: Optional[Callable] = None,
        metrics: Optional[Callable] = None,
        labels: Optional[Dict[CompanionKind, CompanionLabels]] = None
    ):
        self._request = request
        self._perform = perform
        self._prepare = prepare
        self._metrics = metrics
        self._labels = labels or {}

    def prepare_for_timestep(self, activity) -> None:
        if self._prepare:
            self._prepare(activity)

    def request_resources(self, activity) -> Optional[List[ResourceRequest]]:
        if self._metrics:
            for (kind, identifier, measure), value in self._metrics(activity).items():
                activity.set_companion_value(kind, identifier, measure, value)
        if self._request:
            return self._request(activity)
        return None

    def perform_tasks(self, activity) -> None:
        if self._perform:
            self._perform(activity)

    def define_companion_labels(self, kind: CompanionKind) -> Optional[CompanionLabels]:
        return self._labels.get(kind, CompanionLabels())


class ScaledShortfallBehaviour(CallbackBehaviour):
    """
    Opt-in scaling: when a UseAvailableWithImplications request is short,
    every other request is reduced to the same proportion before commit.
    """

    def adjust_resources(self, activity) -> None:
        proportion = activity.scale_to_shortfall_proportion()
        if proportion < 1.0:
            logger.info(f"{activity.qualified_name}: requests scaled to {proportion:.0%} of requirement")
