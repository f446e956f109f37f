"""
Resource pools consumed by the allocation engine.

The engine only needs a narrow view of the resources: find a pool, read its
amount, remove from it and ask for a shortfall to be covered by converting
something else. Those capabilities are captured by the two protocols below.
ResourcesHolder is the in-memory implementation used by the simulation.
"""

import logging
from typing import Iterable, List, Optional, Protocol, Union

from models import (
    LabourIndividual,
    ResourceGroup,
    ResourceRequest,
    StockResourceType,
    Transmutation,
)

logger = logging.getLogger(__name__)


class ResourcePool(Protocol):
    def find_resource(self, group: ResourceGroup) -> Optional[Union[List[StockResourceType], List[LabourIndividual]]]:
        ...

    def find_resource_type(self, request: ResourceRequest) -> Optional[StockResourceType]:
        ...


class TransmutationProvider(Protocol):
    def transmute_shortfall(self, requests: Iterable[ResourceRequest], deep_search: bool = False) -> None:
        ...


class ResourcesHolder:
    """
    Holds the stock pools, the labour pool and the transmutation rules of one
    zone (farm) or market.

    A group with no items is untracked: find_resource() returns None and the
    engine treats every request for it as fully available. Labour is tracked
    as soon as a labour list (even an empty one) is supplied.
    """

    def __init__(
        self,
        name: str = "Resources",
        stocks: Optional[List[StockResourceType]] = None,
        labour: Optional[List[LabourIndividual]] = None,
        transmutations: Optional[List[Transmutation]] = None,
        market: Optional["ResourcesHolder"] = None,
        is_market: bool = False
    ):
        self.name = name
        self.is_market = is_market
        self.stocks: List[StockResourceType] = list(stocks or [])
        if is_market:
            for stock in self.stocks:
                stock.in_market = True
        self.labour: Optional[List[LabourIndividual]] = labour
        self.transmutations: List[Transmutation] = list(transmutations or [])
        self.market = market

        # Set by the ActivitiesHolder that owns this holder (used for market shortfall reports)
        self.activities_holder = None

    # --- Lookup ---

    def find_resource(self, group: ResourceGroup):
        """Return the pool for a group, or None if the group is not tracked here."""
        if group == ResourceGroup.LABOUR:
            return self.labour
        items = [s for s in self.stocks if s.group == group]
        if not items and self.market is not None:
            items = [s for s in self.market.stocks if s.group == group]
        return items or None

    def find_resource_type(self, request: ResourceRequest) -> Optional[StockResourceType]:
        """
        Locate the stock item a request targets.
        Searches this holder first, then the market.
        """
        found = self._find_by_name(request.resource_type, request.resource_type_name)
        if found is None and self.market is not None:
            found = self.market._find_by_name(request.resource_type, request.resource_type_name)
        return found

    def find_by_full_name(self, full_name: str, include_market: bool = False) -> Optional[StockResourceType]:
        for stock in self.stocks:
            if stock.full_name == full_name:
                return stock
        if include_market and self.market is not None:
            return self.market.find_by_full_name(full_name)
        return None

    def _find_by_name(self, group: Optional[ResourceGroup], name: str) -> Optional[StockResourceType]:
        candidates = [s for s in self.stocks if group is None or s.group == group]
        if not name:
            return candidates[0] if candidates else None
        for stock in candidates:
            if name in (stock.name, stock.full_name):
                return stock
        return None

    # --- Transmutation ---

    def transmute_shortfall(self, requests: Iterable[ResourceRequest], deep_search: bool = False) -> None:
        """
        Try to cover each request's shortfall by converting another resource.

        deep_search=False only answers the question (sets transmutation_possible)
        using this holder's own pools. deep_search=True performs the conversion
        and may also spend from the market.
        """
        for request in requests:
            request.transmutation_possible = False
            if not request.allow_transmutation or request.resource_type in (None, ResourceGroup.LABOUR):
                continue

            target = request.resource or self.find_resource_type(request)
            if target is None:
                continue
            needed = request.required - target.amount
            if needed <= 0:
                request.transmutation_possible = True
                continue

            for rule in self.transmutations:
                if rule.target != target.full_name:
                    continue
                source = self.find_by_full_name(rule.source, include_market=deep_search and rule.allow_market)
                if source is None:
                    continue
                cost = needed * rule.source_per_unit
                if source.amount < cost:
                    logger.debug(f"Transmutation {rule.source} -> {rule.target} short: need {cost:.2f}, have {source.amount:.2f}")
                    continue

                request.transmutation_possible = True
                if deep_search:
                    source.amount -= cost
                    target.add(needed)
                    logger.info(f"Transmuted {cost:.2f} of {source.full_name} into {needed:.2f} of {target.full_name}")
                break
