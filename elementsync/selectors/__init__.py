# elementsync/selectors/__init__.py
"""
Selectors package
-----------------
Descriptor model, the DOM driver contract, the Playwright driver and the
strategy resolver that turns descriptors into handles.
"""

from .descriptor import (
    LocatorDescriptor,
    LocatorStrategy,
    RawHandle,
    by_role,
    by_test_id,
    by_text,
    coerce_target,
    css,
    xpath,
)
from .driver import DomDriver
from .locator import PlaywrightDomDriver
from .resolver import ResolvedSet, StrategyResolver

__all__ = [
    "LocatorDescriptor",
    "LocatorStrategy",
    "RawHandle",
    "by_role",
    "by_test_id",
    "by_text",
    "coerce_target",
    "css",
    "xpath",
    "DomDriver",
    "PlaywrightDomDriver",
    "ResolvedSet",
    "StrategyResolver",
]
