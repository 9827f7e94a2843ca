# elementsync/selectors/driver.py
from __future__ import annotations

"""DOM driver contract
----------------------
The capability the engine consumes from the browser-session layer. The engine
never navigates or mutates the DOM; it only queries and probes through this.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from elementsync.selectors.descriptor import LocatorStrategy

Handle = Any
FrameScope = Any
Scope = Any  # page root (None), a FrameScope, or a parent Handle


@runtime_checkable
class DomDriver(Protocol):
    async def query(self, strategy: LocatorStrategy, value: str, scope: Optional[Scope] = None) -> List[Handle]:
        """All matches for strategy/value inside scope (document when None)."""
        ...

    async def is_visible(self, handle: Handle) -> bool: ...

    async def is_enabled(self, handle: Handle) -> bool: ...

    async def bounding_box(self, handle: Handle) -> Optional[Dict[str, float]]: ...

    async def text_content(self, handle: Handle) -> str: ...

    async def input_value(self, handle: Handle) -> str:
        """Current value of an input, textarea or select."""
        ...

    async def get_attribute(self, handle: Handle, name: str) -> Optional[str]: ...

    async def resolve_frame(self, selector: str, scope: Optional[Scope] = None) -> FrameScope:
        """Enter an iframe/shadow boundary. Raises FrameNotFound when absent."""
        ...

    async def get_animations(self, handle: Handle) -> List[Any]:
        """Currently running animations/transitions on the element."""
        ...


__all__ = ["DomDriver", "Handle", "FrameScope", "Scope"]
