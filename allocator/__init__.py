"""
The Resource Allocation Engine.

Runs the per-timestep check / report / take / perform protocol for a tree of
activities against shared resource pools.
"""

from .errors import AllocationError, ConfigurationError, ShortfallError
from .resources import ResourcesHolder, ResourcePool, TransmutationProvider
from .labour import LabourAllocator
from .companions import (
    ActivityFee,
    CompanionComponent,
    CompanionKind,
    CompanionLabels,
    CompanionModelRegistry,
    GreenhouseGasEmission,
    LabourRequirementCompanion,
)
from .behaviour import ActivityBehaviour, CallbackBehaviour, ScaledShortfallBehaviour
from .activity import Activity
from .tree import ActivitiesHolder
from .state import AllocationLedger

__all__ = [
    "AllocationError",
    "ConfigurationError",
    "ShortfallError",
    "ResourcesHolder",
    "ResourcePool",
    "TransmutationProvider",
    "LabourAllocator",
    "ActivityFee",
    "CompanionComponent",
    "CompanionKind",
    "CompanionLabels",
    "CompanionModelRegistry",
    "GreenhouseGasEmission",
    "LabourRequirementCompanion",
    "ActivityBehaviour",
    "CallbackBehaviour",
    "ScaledShortfallBehaviour",
    "Activity",
    "ActivitiesHolder",
    "AllocationLedger",
]
