"""
Labour requirement and filter group models.

A LabourRequirement sets the caps for one labour request and owns a chain
of LabourGroups. Each group narrows the labour pool with its rules and may
hand over to a single child group when it cannot fill the need.
"""

from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Union
from dataclasses import dataclass
from pydantic import BaseModel, Field, PrivateAttr, model_validator

from .activity import ShortfallPolicy
from .resource import LabourIndividual


class LabourLimitStyle(str, Enum):
    """How the per person / per group caps are expressed."""
    FIXED_DAYS = "FixedDays"                            # Caps are days
    PROPORTION_OF_REQUIRED = "ProportionOfRequired"     # Per person caps are fractions of the request


@dataclass
class LabourLimits:
    """Caps in days, resolved for a specific amount needed."""
    max_per_person: float
    min_per_person: float
    max_per_group: float


class FilterOperator(str, Enum):
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_OR_EQUAL = ">="
    IN = "in"


class FilterRule(BaseModel):
    """
    A single predicate on a labour individual.
    'parameter' is a field name (age, sex, hired, name, id) or an attribute key.
    """
    parameter: str = Field(min_length=1)
    operator: FilterOperator = FilterOperator.EQUAL
    value: Union[bool, float, str, List[str]]

    def _lookup(self, individual: LabourIndividual) -> Any:
        if self.parameter in ("age", "sex", "hired", "name", "id"):
            found = getattr(individual, self.parameter)
            return found.value if isinstance(found, Enum) else found
        return individual.attributes.get(self.parameter)

    def matches(self, individual: LabourIndividual) -> bool:
        found = self._lookup(individual)
        if found is None:
            return False

        op = self.operator
        if op == FilterOperator.IN:
            options = self.value if isinstance(self.value, list) else [self.value]
            return str(found) in [str(o) for o in options]
        if op == FilterOperator.EQUAL:
            return str(found) == str(self.value) if not isinstance(found, (int, float)) else found == self.value
        if op == FilterOperator.NOT_EQUAL:
            return str(found) != str(self.value) if not isinstance(found, (int, float)) else found != self.value

        # Ordering operators only make sense for numbers
        try:
            left, right = float(found), float(self.value)
        except (TypeError, ValueError):
            return False
        if op == FilterOperator.LESS_THAN:
            return left < right
        if op == FilterOperator.LESS_OR_EQUAL:
            return left <= right
        if op == FilterOperator.GREATER_THAN:
            return left > right
        return left >= right


class LabourGroup(BaseModel):
    """
    A node in the labour filter chain.
    An empty rule list accepts everyone in the pool.
    """
    name: str = Field(default="Any labour")
    rules: List[FilterRule] = Field(default_factory=list)
    child: Optional["LabourGroup"] = Field(
        default=None,
        description="Next group to try when this one cannot fill the need"
    )

    # Set by the owning LabourRequirement (root) or the previous group
    _parent: Optional[Any] = PrivateAttr(default=None)

    @model_validator(mode='after')
    def link_child(self):
        if self.child is not None:
            self.child._parent = self
        return self

    @property
    def parent(self) -> Optional[Any]:
        return self._parent

    def filter(self, individuals: Iterable[LabourIndividual]) -> List[LabourIndividual]:
        return [i for i in individuals if all(rule.matches(i) for rule in self.rules)]

    def chain(self) -> Iterator["LabourGroup"]:
        """Walk this group and its successors top to bottom."""
        current = self
        while current is not None:
            yield current
            current = current.child


class LabourRequirement(BaseModel):
    """
    Caps and filter chain for a labour request.

    max_per_group is always in days. With LabourLimitStyle.PROPORTION_OF_REQUIRED
    the per person caps are fractions of the amount requested and are converted
    to days by calculate_limits().
    """
    name: str = Field(default="Labour requirement")
    max_per_person: float = Field(default=1000.0, ge=0)
    min_per_person: float = Field(default=0.0, ge=0)
    max_per_group: float = Field(default=10000.0, ge=0)
    limit_style: LabourLimitStyle = Field(default=LabourLimitStyle.FIXED_DAYS)

    # --- Companion settings ---
    days_per_unit: float = Field(default=1.0, ge=0, description="Days needed per unit of the parent's metric")
    identifier: str = Field(default="")
    measure: str = Field(default="")
    policy: ShortfallPolicy = Field(
        default=ShortfallPolicy.USE_AVAILABLE_RESOURCES,
        description="Shortfall action for labour requested through this requirement"
    )

    groups: Optional[LabourGroup] = Field(default=None, description="Root of the filter chain")

    @model_validator(mode='after')
    def validate_caps(self):
        if self.min_per_person > self.max_per_person:
            raise ValueError("min_per_person cannot exceed max_per_person")
        if self.limit_style == LabourLimitStyle.PROPORTION_OF_REQUIRED:
            if self.max_per_person > 1:
                raise ValueError("Proportional per person caps must be between 0 and 1")
        if self.groups is not None:
            self.groups._parent = self
        return self

    def calculate_limits(self, amount_needed: float) -> LabourLimits:
        if self.limit_style == LabourLimitStyle.PROPORTION_OF_REQUIRED:
            return LabourLimits(
                max_per_person=self.max_per_person * amount_needed,
                min_per_person=self.min_per_person * amount_needed,
                max_per_group=self.max_per_group,
            )
        return LabourLimits(
            max_per_person=self.max_per_person,
            min_per_person=self.min_per_person,
            max_per_group=self.max_per_group,
        )
