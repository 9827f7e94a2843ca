# elementsync/selectors/resolver.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from elementsync.core.errors import (
    AmbiguousParent,
    ElementAmbiguous,
    ElementNotFound,
    IndexOutOfRange,
)
from elementsync.selectors.descriptor import LocatorDescriptor, LocatorStrategy, RawHandle, Resolvable
from elementsync.selectors.driver import DomDriver, Handle, Scope
from elementsync.utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class ResolvedSet:
    handles: List[Handle]
    descriptor: Optional[Resolvable] = None
    raw_count: int = 0  # matches before filters/position

    @property
    def count(self) -> int:
        return len(self.handles)

    @property
    def first(self) -> Optional[Handle]:
        return self.handles[0] if self.handles else None

    def single(self) -> Handle:
        if self.count == 0:
            raise ElementNotFound(f"no element matched {_label(self.descriptor)}", descriptor=self.descriptor)
        if self.count > 1:
            raise ElementAmbiguous(self.count, descriptor=self.descriptor)
        return self.handles[0]


def _label(d: Any) -> str:
    return getattr(d, "label", None) or repr(d)


class StrategyResolver:
    """
    Turns a descriptor into zero or more handles. Pure lookup: never clicks,
    types or scrolls. Frame and parent scopes travel as arguments only.

      1) parent chain first (root-first), parent must be a single element
      2) frame boundary, if any
      3) strategy query through the driver
      4) filters (has_text, has_not_text, has_child, visible_only, enabled_only)
      5) position (first/last/index)
      6) strict-mode ambiguity and "at least one" checks
    """

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict

    async def resolve(
        self,
        target: Resolvable,
        driver: DomDriver,
        *,
        strict: Optional[bool] = None,
        require: bool = True,
        scope: Optional[Scope] = None,
    ) -> ResolvedSet:
        if isinstance(target, RawHandle):
            return ResolvedSet(handles=[target.handle], descriptor=target, raw_count=1)

        strict = self.strict if strict is None else strict
        d = target

        if d.parent is not None:
            scope = await self._resolve_parent(d, d.parent, driver, scope)

        if d.frame:
            scope = await driver.resolve_frame(d.frame, scope)

        raw = list(await driver.query(d.strategy, d.value, scope))
        handles = await self._apply_filters(d, driver, raw)
        handles = self._apply_position(d, handles)

        if require and not handles:
            why = f"{len(raw)} before filters" if raw else "no matches"
            raise ElementNotFound(f"no element matched {d.label} ({why})", descriptor=d)

        if strict and not d.has_position and len(handles) > 1:
            raise ElementAmbiguous(
                len(handles),
                f"{len(handles)} elements matched {d.label}; add first/last/index or narrow the selector",
                descriptor=d,
            )

        log.debug(f"resolved {d.label}: {len(handles)} handle(s) ({len(raw)} raw)")
        return ResolvedSet(handles=handles, descriptor=d, raw_count=len(raw))

    async def count(self, target: Resolvable, driver: DomDriver) -> int:
        resolved = await self.resolve(target, driver, strict=False, require=False)
        return resolved.count

    async def describe(self, resolved: ResolvedSet, driver: DomDriver, limit: int = 10) -> List[Dict[str, Any]]:
        """Per-handle diagnostics, capped at `limit` elements."""
        info: List[Dict[str, Any]] = []
        for i, h in enumerate(resolved.handles[:limit]):
            info.append(
                {
                    "index": i,
                    "visible": await driver.is_visible(h),
                    "enabled": await driver.is_enabled(h),
                    "text": (await driver.text_content(h)).strip(),
                    "box": await driver.bounding_box(h),
                }
            )
        return info

    # ---------- Internals ----------

    async def _resolve_parent(
        self, d: LocatorDescriptor, parent: LocatorDescriptor, driver: DomDriver, scope: Optional[Scope]
    ) -> Handle:
        resolved = await self.resolve(parent, driver, strict=False, require=False, scope=scope)
        if resolved.count == 0:
            raise ElementNotFound(f"parent {parent.label} of {d.label} matched nothing", descriptor=d)
        if resolved.count > 1:
            raise AmbiguousParent(
                resolved.count,
                f"parent {parent.label} matched {resolved.count} elements; child {d.label} needs exactly one",
                descriptor=d,
            )
        return resolved.handles[0]

    async def _apply_filters(self, d: LocatorDescriptor, driver: DomDriver, handles: List[Handle]) -> List[Handle]:
        f = d.filters
        if not f.active:
            return handles

        kept: List[Handle] = []
        for h in handles:
            if f.has_text is not None or f.has_not_text is not None:
                text = await driver.text_content(h)
                if f.has_text is not None and f.has_text not in text:
                    continue
                if f.has_not_text is not None and f.has_not_text in text:
                    continue
            if f.has_child is not None and not await driver.query(LocatorStrategy.css, f.has_child, h):
                continue
            if f.visible_only and not await driver.is_visible(h):
                continue
            if f.enabled_only and not await driver.is_enabled(h):
                continue
            kept.append(h)
        return kept

    def _apply_position(self, d: LocatorDescriptor, handles: List[Handle]) -> List[Handle]:
        # zero matches is reported as plain not-found by the caller, not out-of-range
        if not handles:
            return handles
        if d.first:
            return handles[:1]
        if d.last:
            return handles[-1:]
        if d.index is not None:
            if d.index >= len(handles):
                raise IndexOutOfRange(d.index, len(handles), descriptor=d)
            return [handles[d.index]]
        return handles


__all__ = ["ResolvedSet", "StrategyResolver"]
