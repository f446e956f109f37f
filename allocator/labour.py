"""
Labour allocation logic.

This module answers: "How many days of labour can this request get, and from whom?"
It walks the request's filter chain top to bottom and, at each group:
1. Whole task first - the person with the tightest fit who can cover everything left.
2. Partial - if the activity accepts partial resources, the most available people first.

Check and take share one algorithm; only take (commit=True) changes the pool.
"""

import logging
from typing import Dict, List, Optional

from models import (
    LabourGroup,
    LabourIndividual,
    LabourLimitStyle,
    LabourRequirement,
    ResourceRequest,
    is_positive,
)
from models.request import TOLERANCE

logger = logging.getLogger(__name__)


class LabourAllocator:
    """
    Matches labour requests against the labour pool.

    The per person cap is applied against each individual's last request
    marker, so an activity cannot draw more than max_per_person from the same
    person in one timestep while a later activity still sees that person's
    remaining days.
    """

    # Caps used when a request arrives with a filter group that has no
    # requirement above it (e.g. labour asked for by a transmutation).
    DEFAULT_REQUIREMENT = {
        "limit_style": LabourLimitStyle.FIXED_DAYS,
        "max_per_group": 10000.0,
        "max_per_person": 1000.0,
        "min_per_person": 0.0,
    }

    def check(self, request: ResourceRequest, activity, pool: List[LabourIndividual], allow_partial: bool) -> float:
        """Amount of labour available for the request. Does not change the pool."""
        return self._allocate(request, activity, pool, allow_partial, commit=False)

    def take(self, request: ResourceRequest, activity, pool: List[LabourIndividual], allow_partial: bool) -> float:
        """Allocate labour, update each individual used and settle request.provided and value."""
        request.provided = 0.0
        request.value = 0.0
        return self._allocate(request, activity, pool, allow_partial, commit=True)

    def resolve_requirement(self, request: ResourceRequest, activity) -> LabourRequirement:
        """
        Caps come from the requirement owning the first filter group, else the
        requirement of the companion that raised the request, else the first
        requirement found on the calling activity, else the defaults.
        """
        first = next((f for f in request.filter_details if isinstance(f, LabourGroup)), None)
        if first is not None:
            if isinstance(first.parent, LabourRequirement):
                return first.parent
            return LabourRequirement(**self.DEFAULT_REQUIREMENT)

        owned = getattr(request.activity_model, "requirement", None)
        if isinstance(owned, LabourRequirement):
            return owned

        found = activity.find_labour_requirement() if activity is not None else None
        if found is not None:
            return found
        return LabourRequirement(**self.DEFAULT_REQUIREMENT)

    def _allocate(
        self,
        request: ResourceRequest,
        activity,
        pool: List[LabourIndividual],
        allow_partial: bool,
        commit: bool
    ) -> float:
        requirement = self.resolve_requirement(request, activity)
        amount_needed = min(request.required, requirement.max_per_group)
        request.required = amount_needed
        limits = requirement.calculate_limits(amount_needed)

        current: Optional[LabourGroup] = next(
            (f for f in request.filter_details if isinstance(f, LabourGroup)), None
        )
        if current is None:
            # No filter groups: anyone in the pool will do
            current = LabourGroup()

        owner_id = activity.id
        # Capacities are read once so that check (which never commits) sees
        # its own tentative allocations through 'used'.
        base = {i.id: i.capacity_for_activity(owner_id, limits.max_per_person) for i in pool}
        used: Dict[str, float] = {}

        def capacity(individual: LabourIndividual) -> float:
            return max(0.0, base[individual.id] - used.get(individual.id, 0.0))

        provided = 0.0
        while current is not None and amount_needed - provided > TOLERANCE:
            items = [i for i in current.filter(pool) if is_positive(capacity(i))]

            # Phase A: someone who can do the whole remaining task, tightest fit first
            while amount_needed - provided > TOLERANCE:
                remaining = amount_needed - provided
                able = [i for i in items if capacity(i) >= remaining - TOLERANCE]
                if not able:
                    break
                chosen = min(able, key=capacity)
                amount = min(remaining, capacity(chosen), limits.max_per_person)
                if amount < limits.min_per_person:
                    logger.debug(
                        f"Labour for {activity.name}: {amount:.2f} days below minimum "
                        f"{limits.min_per_person:.2f} per person, stopping at {provided:.2f}"
                    )
                    return provided
                provided += self._assign(request, chosen, amount, owner_id, used, commit)

            # Phase B: share the rest among whoever is left, most available first
            if allow_partial and amount_needed - provided > TOLERANCE:
                for individual in sorted(items, key=capacity, reverse=True):
                    remaining = amount_needed - provided
                    if remaining <= TOLERANCE:
                        break
                    amount = min(remaining, capacity(individual), limits.max_per_person)
                    if is_positive(amount) and amount >= limits.min_per_person:
                        provided += self._assign(request, individual, amount, owner_id, used, commit)

            current = current.child

        logger.debug(f"Labour for {activity.name}: {provided:.2f} of {amount_needed:.2f} days ({'take' if commit else 'check'})")
        return provided

    def _assign(
        self,
        request: ResourceRequest,
        individual: LabourIndividual,
        amount: float,
        owner_id: str,
        used: Dict[str, float],
        commit: bool
    ) -> float:
        used[individual.id] = used.get(individual.id, 0.0) + amount
        if not commit:
            return amount

        taken = individual.remove(amount)
        individual.record_claim(owner_id, taken)
        request.provided += taken
        request.value += taken * individual.pay_rate
        return taken
