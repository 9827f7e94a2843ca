# elementsync/core/errors.py
from __future__ import annotations

"""Error taxonomy
-----------------
Typed failures raised by the resolver, the condition engine, the retry executor
and the dispatcher. Callers branch on the class, never on the message.
"""

from typing import Any, Optional, Sequence


class ElementSyncError(RuntimeError):
    """Base error for the engine. `descriptor` is attached when known."""

    def __init__(self, message: str, *, descriptor: Any = None) -> None:
        super().__init__(message)
        self.descriptor = descriptor
        # filled in by the dispatcher when the error leaves an acquisition
        self.attempts: Optional[int] = None
        self.elapsed_ms: Optional[int] = None

    def __str__(self) -> str:
        base = super().__str__()
        details = []
        if self.attempts is not None:
            details.append(f"attempts={self.attempts}")
        if self.elapsed_ms is not None:
            details.append(f"elapsed={self.elapsed_ms}ms")
        return f"{base} [{', '.join(details)}]" if details else base


class ElementNotFound(ElementSyncError):
    """No element matched the descriptor."""


class IndexOutOfRange(ElementNotFound):
    def __init__(self, index: int, count: int, *, descriptor: Any = None) -> None:
        super().__init__(f"index {index} out of range for {count} match(es)", descriptor=descriptor)
        self.index = index
        self.count = count


class ElementAmbiguous(ElementSyncError):
    """Strict mode: more than one match and no position selector."""

    def __init__(self, count: int, message: Optional[str] = None, *, descriptor: Any = None) -> None:
        super().__init__(message or f"{count} elements matched where exactly one was expected", descriptor=descriptor)
        self.count = count


class AmbiguousParent(ElementAmbiguous):
    """A parent descriptor in the chain resolved to more than one element."""


class FrameNotFound(ElementSyncError):
    def __init__(self, selector: str, *, descriptor: Any = None) -> None:
        super().__init__(f"frame not found: {selector!r}", descriptor=descriptor)
        self.selector = selector


class UnsupportedStrategy(ElementSyncError):
    def __init__(self, strategy: Any, *, descriptor: Any = None) -> None:
        super().__init__(f"unsupported locator strategy: {strategy!r}", descriptor=descriptor)
        self.strategy = strategy


class ConditionTimeout(ElementSyncError):
    """A wait condition (or set of them) was not satisfied within its budget."""

    def __init__(
        self,
        condition_names: Sequence[str],
        elapsed_ms: int,
        *,
        last_error: Optional[BaseException] = None,
        message: Optional[str] = None,
        descriptor: Any = None,
    ) -> None:
        names = ", ".join(condition_names) or "<none>"
        msg = message or f"timed out waiting for {names}"
        msg = f"{msg} after {elapsed_ms} ms"
        if last_error is not None:
            msg += f" (last error: {type(last_error).__name__}: {last_error})"
        super().__init__(msg, descriptor=descriptor)
        self.condition_names = list(condition_names)
        self.condition_name = names
        self.elapsed_ms = elapsed_ms
        self.last_error = last_error


class RetryExhausted(ElementSyncError):
    """Retry budget spent. Always wraps the last concrete error."""

    def __init__(self, last_error: BaseException, attempts: int, elapsed_ms: int, *, description: str = "operation") -> None:
        super().__init__(
            f"{description} failed after {attempts} attempt(s) in {elapsed_ms} ms: "
            f"{type(last_error).__name__}: {last_error}"
        )
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed_ms = elapsed_ms

    def __str__(self) -> str:
        # attempts/elapsed are already part of the message
        return RuntimeError.__str__(self)


class CatalogError(ElementSyncError):
    """Invalid descriptor catalog (YAML object map)."""


__all__ = [
    "ElementSyncError",
    "ElementNotFound",
    "IndexOutOfRange",
    "ElementAmbiguous",
    "AmbiguousParent",
    "FrameNotFound",
    "UnsupportedStrategy",
    "ConditionTimeout",
    "RetryExhausted",
    "CatalogError",
]
