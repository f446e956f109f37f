"""
Resource data models for the Resource Allocation Engine.

This module defines the 'Supply' side of the engine:
1. Stock resources (Generic pools: feed, finance, products, emissions)
2. Labour individuals (Human resources with per-timestep availability)
3. Transmutations (Rules for covering a shortfall from another pool)
"""

from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .request import ResourceGroup, ResourceRequest


class StockResourceType(BaseModel):
    """
    A generic pool item (e.g. 'AnimalFoodStore.Hay', 'Finance.Bank').
    Anything that is simply an amount that can be added to and taken from.
    """
    name: str = Field(min_length=1, description="Item name, unique within its group")
    group: ResourceGroup = Field(description="Resource group the item belongs to")
    amount: float = Field(default=0.0, ge=0, description="Amount currently held")
    units: str = Field(default="", description="Display units (kg, $, t CO2e)")
    price_per_unit: Optional[float] = Field(
        default=None,
        ge=0,
        description="Rate used to value a take. None for resources without a value."
    )
    in_market: bool = Field(default=False, description="Owned by a market rather than the farm")

    @property
    def full_name(self) -> str:
        return f"{self.group.value}.{self.name}"

    def add(self, quantity: float) -> None:
        """Deposit into the pool."""
        if quantity < 0:
            raise ValueError("Cannot add a negative amount, use remove()")
        self.amount += quantity

    def remove(self, request: ResourceRequest) -> float:
        """
        Take up to request.required from the pool.
        Never overdraws: the amount taken is capped at what is held.
        """
        taken = min(self.amount, request.required)
        self.amount -= taken
        request.provided = taken
        if self.price_per_unit is not None:
            request.value = taken * self.price_per_unit
        return taken

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Hay",
            "group": "AnimalFoodStore",
            "amount": 5000.0,
            "units": "kg",
            "price_per_unit": 0.25
        }
    })


class Sex(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class LabourIndividual(BaseModel):
    """
    One person in the labour pool.

    The last-request marker (owner + amount) records how much of this person
    the most recent claiming activity has already used this timestep. It is
    the only guard against double counting and assumes activities are
    processed one at a time in a fixed order.
    """
    id: str = Field(description="Unique identifier")
    name: str = Field(min_length=1)
    age: float = Field(ge=0, description="Age in years")
    sex: Sex
    hired: bool = Field(default=False, description="Hired labour rather than family")
    attributes: Dict[str, str] = Field(
        default_factory=dict,
        description="Free-form tags available to filter rules (e.g. {'skill': 'shearing'})"
    )

    # --- Availability ---
    available_days: float = Field(ge=0, description="Days still available this timestep")
    pay_rate: float = Field(default=0.0, ge=0, description="Value of one day of this person's labour")

    # --- Last request marker ---
    last_request_owner: Optional[str] = Field(default=None, description="Id of the last claiming activity")
    last_request_amount: float = Field(default=0.0, ge=0)

    def capacity_for_activity(self, owner_id: str, max_per_person: float) -> float:
        """
        Days this person can still give the owner activity this timestep.
        Consumption by a different activity does not count against the cap,
        only what is left in the pool does.
        """
        if self.last_request_owner == owner_id:
            capacity = min(self.available_days, max_per_person - self.last_request_amount)
        else:
            capacity = min(self.available_days, max_per_person)
        return max(0.0, capacity)

    def record_claim(self, owner_id: str, amount: float) -> None:
        """Update the last request marker after a commit."""
        if self.last_request_owner != owner_id:
            self.last_request_amount = 0.0
        self.last_request_owner = owner_id
        self.last_request_amount += amount

    def clear_claims(self) -> None:
        """Start of timestep: no activity has claimed this person yet."""
        self.last_request_owner = None
        self.last_request_amount = 0.0

    def remove(self, amount: float) -> float:
        taken = min(self.available_days, amount)
        self.available_days -= taken
        return taken

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "lab_01",
            "name": "Farm manager",
            "age": 42,
            "sex": "Female",
            "attributes": {"skill": "cattle"},
            "available_days": 22,
            "pay_rate": 0.0
        }
    })


class Transmutation(BaseModel):
    """
    A rule for covering a shortfall in one pool by converting from another
    (e.g. buying hay with cash).
    """
    target: str = Field(description="Full name of the resource being topped up ('Group.Item')")
    source: str = Field(description="Full name of the resource being spent ('Group.Item')")
    source_per_unit: float = Field(gt=0, description="Units of source spent per unit of target gained")
    allow_market: bool = Field(default=True, description="Source may be drawn from the market")

    @model_validator(mode='after')
    def validate_pair(self):
        if self.target == self.source:
            raise ValueError("A transmutation cannot convert a resource into itself")
        return self
