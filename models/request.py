"""
Resource request model for the Resource Allocation Engine.

A ResourceRequest is the single currency passed between activities,
companion components, the labour allocator and the resource pools.
It is created in the request phase, resolved (available) in the check
phase and settled (provided, value) in the take phase.
"""

from enum import Enum
from typing import Any, List, NamedTuple, Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

# Quantities are compared with a tolerance so that 9.999999999 days of labour
# does not register as a shortfall against 10.
TOLERANCE = 1e-9


def is_positive(value: float) -> bool:
    return value > TOLERANCE


def is_negative(value: float) -> bool:
    return value < -TOLERANCE


def is_greater_than(first: float, second: float) -> bool:
    return first - second > TOLERANCE


class ResourceGroup(str, Enum):
    """Top-level resource categories held by a ResourcesHolder."""
    LABOUR = "Labour"
    FINANCE = "Finance"
    ANIMAL_FOOD_STORE = "AnimalFoodStore"
    HUMAN_FOOD_STORE = "HumanFoodStore"
    PRODUCT_STORE = "ProductStore"
    GRAZE_FOOD_STORE = "GrazeFoodStore"
    LAND = "Land"
    WATER = "Water"
    EQUIPMENT = "Equipment"
    GREENHOUSE_GASES = "GreenhouseGases"


class CompanionDetails(NamedTuple):
    """(type, identifier, measure) of the companion that produced a request."""
    type: str
    identifier: str = ""
    measure: str = ""


class ResourceRequest(BaseModel):
    """
    One ask for a quantity of a resource.
    Invariant after take: 0 <= provided <= available.
    """

    # --- Target ---
    resource_type: Optional[ResourceGroup] = Field(
        default=None,
        description="Resource group targeted. None means untracked (never constrains)."
    )
    resource_type_name: str = Field(
        default="",
        description="Name of the specific pool item within the group (e.g. 'Bank.Cheque')"
    )
    resource: Optional[Any] = Field(
        default=None, exclude=True, repr=False,
        description="Pool item located during check (filled in by the engine if blank)"
    )

    # --- Quantities ---
    required: float = Field(ge=0, description="Amount asked for")
    available: float = Field(default=0.0, ge=0, description="Amount resolved in the check phase")
    provided: float = Field(default=0.0, ge=0, description="Amount actually taken")
    value: float = Field(default=0.0, description="Cost or benefit of what was provided")

    # --- Labour matching ---
    filter_details: List[Any] = Field(
        default_factory=list,
        description="Ordered filter criteria, the first LabourGroup starts the chain"
    )

    # --- Ownership ---
    activity_model: Optional[Any] = Field(
        default=None, exclude=True, repr=False,
        description="Owning activity or companion, used for policy lookup"
    )
    activity_id: Optional[UUID] = Field(default=None, description="Batch id set on each check")
    companion_model_details: Optional[CompanionDetails] = None
    category: str = Field(default="", description="Transaction category for ledgers")
    related_to_resource: str = Field(default="", description="Name of a resource this request relates to")
    additional_details: Optional[Any] = Field(default=None, exclude=True, repr=False)

    # --- Substitution ---
    allow_transmutation: bool = Field(default=False)
    transmutation_possible: bool = Field(default=False)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "resource_type": "AnimalFoodStore",
            "resource_type_name": "AnimalFoodStore.Hay",
            "required": 120.0,
            "category": "Feed herd",
            "allow_transmutation": True
        }
    })

    @property
    def shortfall(self) -> float:
        """Amount still missing after the check phase (0 if fully available)."""
        return max(0.0, self.required - self.available)

    @property
    def is_short(self) -> bool:
        return is_negative(self.available - self.required)

    @property
    def proportion_available(self) -> float:
        if self.required <= 0:
            return 1.0
        return self.available / self.required
