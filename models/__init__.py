"""
Data models package for the Resource Allocation Engine.

This package exports the core pillars of the data architecture:
1. Demand (ResourceRequest, ShortfallPolicy, ActivityStatus)
2. Supply (StockResourceType, LabourIndividual, Transmutation)
3. Labour matching (LabourRequirement, LabourGroup, FilterRule)
4. Timing (MonthlyTimer, IntervalTimer)
"""

from .activity import (
    ActivityStatus,
    ShortfallPolicy,
    AllocationStyle,
    ActivityPerformed,
    ShortfallRecord
)

from .request import (
    ResourceRequest,
    ResourceGroup,
    CompanionDetails,
    is_positive,
    is_negative,
    is_greater_than
)

from .resource import (
    StockResourceType,
    LabourIndividual,
    Sex,
    Transmutation
)

from .labour import (
    LabourRequirement,
    LabourGroup,
    LabourLimits,
    LabourLimitStyle,
    FilterRule,
    FilterOperator
)

from .timer import (
    MonthlyTimer,
    IntervalTimer
)

__all__ = [
    # --- Activity Models ---
    "ActivityStatus",
    "ShortfallPolicy",
    "AllocationStyle",
    "ActivityPerformed",
    "ShortfallRecord",

    # --- Request Models ---
    "ResourceRequest",
    "ResourceGroup",
    "CompanionDetails",
    "is_positive",
    "is_negative",
    "is_greater_than",

    # --- Resource Models ---
    "StockResourceType",
    "LabourIndividual",
    "Sex",
    "Transmutation",

    # --- Labour Matching ---
    "LabourRequirement",
    "LabourGroup",
    "LabourLimits",
    "LabourLimitStyle",
    "FilterRule",
    "FilterOperator",

    # --- Timing ---
    "MonthlyTimer",
    "IntervalTimer",
]
