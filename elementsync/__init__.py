"""
elementsync
-----------
Element resolution and synchronization for Playwright browser tests.

    from elementsync import ElementEngine, css

    engine = ElementEngine.for_page(page)
    banner = await engine.acquire(css("#banner"), "visible", timeout_ms=5000)
"""

from elementsync.core.engine import ElementEngine
from elementsync.core.errors import (
    ConditionTimeout,
    ElementAmbiguous,
    ElementNotFound,
    ElementSyncError,
    FrameNotFound,
    RetryExhausted,
    UnsupportedStrategy,
)
from elementsync.core.retry import RetryPolicy
from elementsync.detection.conditions import ElementState, WaitCondition
from elementsync.selectors.descriptor import LocatorDescriptor, LocatorStrategy, RawHandle, by_role, by_test_id, by_text, css, xpath

__version__ = "0.1.0"

__all__ = [
    "ElementEngine",
    "ConditionTimeout",
    "ElementAmbiguous",
    "ElementNotFound",
    "ElementSyncError",
    "FrameNotFound",
    "RetryExhausted",
    "UnsupportedStrategy",
    "RetryPolicy",
    "ElementState",
    "WaitCondition",
    "LocatorDescriptor",
    "LocatorStrategy",
    "RawHandle",
    "by_role",
    "by_test_id",
    "by_text",
    "css",
    "xpath",
]
