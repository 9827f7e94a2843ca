# elementsync/core/catalog.py
from __future__ import annotations

"""Descriptor catalog
--------------------
YAML object map of named descriptors:

    elements:
      login_form:
        strategy: css
        value: "form#login"
      submit:
        parent: login_form          # by name
        strategy: role
        value: "button|Sign in"
      user_field: "testid=${USER_FIELD_ID}"

${VAR} placeholders are filled from the environment. Each element is
validated on its own and all problems are reported together.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

import yaml
from pydantic import ValidationError

from elementsync.core.errors import CatalogError, UnsupportedStrategy
from elementsync.selectors.descriptor import LocatorDescriptor, coerce_target, parse_target_string
from elementsync.utils.logger import get_logger

log = get_logger(__name__)

_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _subst_env(obj: Any) -> Any:
    if isinstance(obj, str):
        def repl(m: "re.Match[str]") -> str:
            return os.environ.get(m.group(1), m.group(0))
        return _ENV_RE.sub(repl, obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


class DescriptorCatalog:
    """Named descriptors loaded from a catalog file."""

    def __init__(self, descriptors: Mapping[str, LocatorDescriptor], source: Optional[str] = None) -> None:
        self._descriptors: Dict[str, LocatorDescriptor] = dict(descriptors)
        self.source = source

    def get(self, name: str) -> LocatorDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise CatalogError(f"unknown element {name!r} in catalog {self.source or '<memory>'}") from None

    def names(self) -> List[str]:
        return list(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)


class _Builder:
    def __init__(self, raw: Dict[str, Any], source: str) -> None:
        self.raw = raw
        self.source = source
        self.built: Dict[str, LocatorDescriptor] = {}
        self.errors: List[str] = []
        self._failed: Set[str] = set()

    def build(self, name: str, stack: List[str]) -> Optional[LocatorDescriptor]:
        if name in self.built:
            return self.built[name]
        if name in self._failed:
            return None
        if name in stack:
            cycle = " -> ".join(stack[stack.index(name):] + [name])
            self._fail(name, f"elements.{name}.parent", f"parent cycle: {cycle}")
            return None

        spec = self.raw[name]
        try:
            if isinstance(spec, str):
                d = parse_target_string(spec)
                d = d.described_as(name)
            elif isinstance(spec, dict):
                data = dict(spec)
                parent_ref = data.pop("parent", None)
                if parent_ref is not None:
                    parent = self._parent(name, parent_ref, stack + [name])
                    if parent is None:
                        self._failed.add(name)
                        return None
                    data["parent"] = parent
                data.setdefault("description", name)
                d = coerce_target(data)  # type: ignore[assignment]
            else:
                self._fail(name, f"elements.{name}", "must be a mapping or a target string")
                return None
        except ValidationError as ve:
            for e in ve.errors():
                loc = ".".join(str(p) for p in e.get("loc", []))
                where = f"elements.{name}.{loc}" if loc else f"elements.{name}"
                self._fail(name, where, e.get("msg", "invalid value"))
            return None
        except (UnsupportedStrategy, ValueError) as e:
            self._fail(name, f"elements.{name}", str(e))
            return None

        self.built[name] = d  # type: ignore[assignment]
        return d  # type: ignore[return-value]

    def _parent(self, name: str, ref: Any, stack: List[str]) -> Optional[LocatorDescriptor]:
        if not isinstance(ref, str):
            self._fail(name, f"elements.{name}.parent", "must name another element")
            return None
        if ref not in self.raw:
            self._fail(name, f"elements.{name}.parent", f"unknown element {ref!r}")
            return None
        return self.build(ref, stack)

    def _fail(self, name: str, where: str, msg: str) -> None:
        self._failed.add(name)
        self.errors.append(f"  - {where}: {msg}")


def parse_catalog(data: Any, source: str = "<memory>") -> DescriptorCatalog:
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {source} must define a mapping/object at the top level.")
    elements = data.get("elements")
    if not isinstance(elements, dict) or not elements:
        raise CatalogError(f"Catalog {source} must define a non-empty 'elements' mapping.")

    raw = {str(k): v for k, v in _subst_env(elements).items()}
    builder = _Builder(raw, source)
    for name in raw:
        builder.build(name, [])

    if builder.errors:
        raise CatalogError("\n".join([f"Invalid catalog '{source}':"] + builder.errors))

    log.debug(f"loaded {len(builder.built)} element(s) from {source}")
    # keep the file's order
    return DescriptorCatalog({n: builder.built[n] for n in raw}, source=source)


def load_catalog(path: Path | str) -> DescriptorCatalog:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Catalog file not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as ye:
        raise CatalogError(f"YAML parse error in {p}: {ye}") from ye
    return parse_catalog(data, source=str(p))


__all__ = ["DescriptorCatalog", "parse_catalog", "load_catalog"]
