# elementsync/selectors/descriptor.py
from __future__ import annotations

"""Descriptor model
-------------------
Immutable, composable description of "which element(s)". Pure data: the
resolver gives it behavior. Builders return new descriptors and never touch
the receiver, so one descriptor tree can be shared by concurrent acquisitions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from elementsync.core.errors import UnsupportedStrategy


# ---------- Core enums ----------


class LocatorStrategy(str, Enum):
    css = "css"
    xpath = "xpath"
    text = "text"
    role = "role"
    test_id = "testid"
    placeholder = "placeholder"
    alt_text = "alt"
    title = "title"
    label = "label"


# ---------- Filters ----------


class DescriptorFilters(BaseModel):
    """Conjunctive post-filters applied after the base strategy match."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    has_text: Optional[str] = None
    has_not_text: Optional[str] = None
    has_child: Optional[str] = Field(default=None, description="css selector a match must contain")
    visible_only: bool = False
    enabled_only: bool = False

    @property
    def active(self) -> bool:
        return bool(self.has_text or self.has_not_text or self.has_child or self.visible_only or self.enabled_only)


# ---------- Descriptor ----------


class LocatorDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: LocatorStrategy = Field(default=LocatorStrategy.css)
    value: str = Field(..., description="Selector, expression, text or role name")
    parent: Optional["LocatorDescriptor"] = None
    index: Optional[int] = Field(default=None, ge=0)
    first: bool = False
    last: bool = False
    filters: DescriptorFilters = Field(default_factory=DescriptorFilters)
    frame: Optional[str] = Field(default=None, description="iframe/shadow host selector to enter first")
    description: Optional[str] = Field(default=None, description="Diagnostics only")

    @field_validator("value")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("descriptor value cannot be empty")
        return v

    @field_validator("frame")
    @classmethod
    def _frame_non_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("frame selector cannot be empty")
        return v

    @model_validator(mode="after")
    def _one_position(self) -> "LocatorDescriptor":
        chosen = [n for n, on in (("index", self.index is not None), ("first", self.first), ("last", self.last)) if on]
        if len(chosen) > 1:
            raise ValueError(f"position selectors are mutually exclusive, got: {', '.join(chosen)}")
        return self

    # ---------- Introspection ----------

    @property
    def has_position(self) -> bool:
        return self.index is not None or self.first or self.last

    def chain(self) -> Tuple["LocatorDescriptor", ...]:
        """Descriptors from the root ancestor down to self."""
        out = []
        node: Optional[LocatorDescriptor] = self
        while node is not None:
            out.append(node)
            node = node.parent
        return tuple(reversed(out))

    def _segment(self) -> str:
        seg = f"{self.strategy.value}:{self.value}"
        if self.frame:
            seg = f"frame({self.frame}) >> {seg}"
        if self.first:
            seg += "[first]"
        elif self.last:
            seg += "[last]"
        elif self.index is not None:
            seg += f"[{self.index}]"
        return seg

    @property
    def label(self) -> str:
        if self.description:
            return self.description
        return " >> ".join(d._segment() for d in self.chain())

    def __str__(self) -> str:
        return self.label

    # ---------- Builders (all return new descriptors) ----------

    def locate(self, value: str, strategy: LocatorStrategy | str = LocatorStrategy.css, **kwargs: Any) -> "LocatorDescriptor":
        """Child descriptor scoped inside this one."""
        return LocatorDescriptor(strategy=LocatorStrategy(strategy), value=value, parent=self, **kwargs)

    def nth(self, index: int) -> "LocatorDescriptor":
        return self.model_copy(update={"index": index, "first": False, "last": False}).revalidate()

    def at_first(self) -> "LocatorDescriptor":
        return self.model_copy(update={"index": None, "first": True, "last": False})

    def at_last(self) -> "LocatorDescriptor":
        return self.model_copy(update={"index": None, "first": False, "last": True})

    def all(self) -> "LocatorDescriptor":
        return self.model_copy(update={"index": None, "first": False, "last": False})

    def filter(
        self,
        *,
        has_text: Optional[str] = None,
        has_not_text: Optional[str] = None,
        has_child: Optional[str] = None,
        visible_only: Optional[bool] = None,
        enabled_only: Optional[bool] = None,
    ) -> "LocatorDescriptor":
        updates = {
            k: v
            for k, v in {
                "has_text": has_text,
                "has_not_text": has_not_text,
                "has_child": has_child,
                "visible_only": visible_only,
                "enabled_only": enabled_only,
            }.items()
            if v is not None
        }
        return self.model_copy(update={"filters": self.filters.model_copy(update=updates)})

    def in_frame(self, frame: Optional[str]) -> "LocatorDescriptor":
        return self.model_copy(update={"frame": frame}).revalidate()

    def described_as(self, description: str) -> "LocatorDescriptor":
        return self.model_copy(update={"description": description})

    def revalidate(self) -> "LocatorDescriptor":
        # model_copy skips validation; re-run it for fields with constraints
        return LocatorDescriptor.model_validate(self.model_dump(by_alias=False, round_trip=True))


LocatorDescriptor.model_rebuild()


# ---------- Convenience constructors ----------


def css(value: str, **kwargs: Any) -> LocatorDescriptor:
    return LocatorDescriptor(strategy=LocatorStrategy.css, value=value, **kwargs)


def xpath(value: str, **kwargs: Any) -> LocatorDescriptor:
    return LocatorDescriptor(strategy=LocatorStrategy.xpath, value=value, **kwargs)


def by_text(value: str, **kwargs: Any) -> LocatorDescriptor:
    return LocatorDescriptor(strategy=LocatorStrategy.text, value=value, **kwargs)


def by_role(role: str, name: Optional[str] = None, **kwargs: Any) -> LocatorDescriptor:
    value = f"{role}|{name}" if name else role
    return LocatorDescriptor(strategy=LocatorStrategy.role, value=value, **kwargs)


def by_test_id(value: str, **kwargs: Any) -> LocatorDescriptor:
    return LocatorDescriptor(strategy=LocatorStrategy.test_id, value=value, **kwargs)


# ---------- Value conventions ----------


def parse_role_value(value: str) -> Tuple[str, Optional[str]]:
    """
    Accept a few simple role notations for flexibility:

    - "button"                      → role="button"
    - "button|Create Project"       → role="button", name="Create Project"
    - "button:Create Project"       → same as above
    - "button name=Create Project"  → same as above (space syntax)

    Returns: (role, accessible_name_or_None)
    """
    v = value.strip()
    for sep in ("|", " name=", ":"):
        if sep in v:
            role, name = v.split(sep, 1)
            return role.strip(), name.strip() or None
    return v, None


def parse_text_value(value: str) -> Tuple[str, bool]:
    """Leading '=' requests an exact match: '=Sign in' → ('Sign in', True)."""
    if value.startswith("=") and len(value) > 1:
        return value[1:], True
    return value, False


def normalize_xpath(expr: str, *, relative: bool = False) -> str:
    """Prefix bare expressions with '//' and make them relative when scoped to a parent."""
    e = expr.strip()
    if not e.startswith(("/", "(", ".")):
        e = f"//{e}"
    if relative and e.startswith("/"):
        e = f".{e}"
    return e


# ---------- Boundary adapter (tagged union) ----------


@dataclass(frozen=True)
class RawHandle:
    """An already-resolved driver handle passed through the engine as-is."""
    handle: Any
    description: Optional[str] = None

    @property
    def label(self) -> str:
        return self.description or f"raw:{self.handle!r}"


Target = Union[str, Mapping[str, Any], LocatorDescriptor, RawHandle]
Resolvable = Union[LocatorDescriptor, RawHandle]

_PREFIXES = {s.value: s for s in LocatorStrategy}
_PREFIXES.update({
    "test_id": LocatorStrategy.test_id,
    "data-testid": LocatorStrategy.test_id,
    "alt_text": LocatorStrategy.alt_text,
    "alttext": LocatorStrategy.alt_text,
})


def parse_target_string(raw: str) -> LocatorDescriptor:
    """
    'css=.btn', 'xpath=//a', 'text==Exact', 'role=button|Save', 'testid=login' …
    Bare strings starting with '/' or '(' are xpath, anything else is css.
    """
    s = raw.strip()
    if not s:
        raise ValueError("target string cannot be empty")
    head, sep, rest = s.partition("=")
    if sep and head.strip().lower() in _PREFIXES:
        return LocatorDescriptor(strategy=_PREFIXES[head.strip().lower()], value=rest)
    if s.startswith(("/", "(")):
        return LocatorDescriptor(strategy=LocatorStrategy.xpath, value=s)
    return LocatorDescriptor(strategy=LocatorStrategy.css, value=s)


def coerce_target(target: Target) -> Resolvable:
    """
    Convert any accepted target shape once, at the engine boundary.
    Downstream code only ever sees LocatorDescriptor or RawHandle.
    """
    if isinstance(target, (LocatorDescriptor, RawHandle)):
        return target
    if isinstance(target, str):
        return parse_target_string(target)
    if isinstance(target, Mapping):
        data = dict(target)
        strategy = data.get("strategy")
        if strategy is not None and not isinstance(strategy, LocatorStrategy):
            key = str(strategy).strip().lower()
            if key not in _PREFIXES:
                raise UnsupportedStrategy(strategy)
            data["strategy"] = _PREFIXES[key]
        return LocatorDescriptor.model_validate(data)
    raise TypeError(f"cannot use {type(target).__name__} as an element target")


__all__ = [
    "LocatorStrategy",
    "DescriptorFilters",
    "LocatorDescriptor",
    "RawHandle",
    "Target",
    "Resolvable",
    "css",
    "xpath",
    "by_text",
    "by_role",
    "by_test_id",
    "parse_role_value",
    "parse_text_value",
    "normalize_xpath",
    "parse_target_string",
    "coerce_target",
]
