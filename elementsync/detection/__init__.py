"""
Detection package
-----------------
Wait conditions, the polling engine and the element stability probe.
Consumers can also import submodules directly (e.g., elementsync.detection.conditions).
"""

from .conditions import ConditionEngine, ElementConditions, ElementState, WaitCondition, element_condition
from .stability import StabilityProbe

__all__ = [
    "ConditionEngine",
    "ElementConditions",
    "ElementState",
    "WaitCondition",
    "element_condition",
    "StabilityProbe",
]
