# elementsync/selectors/locator.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from playwright.async_api import FrameLocator, Locator, Page

from elementsync.core.errors import FrameNotFound, UnsupportedStrategy
from elementsync.selectors.descriptor import (
    LocatorStrategy,
    normalize_xpath,
    parse_role_value,
    parse_text_value,
)
from elementsync.utils.logger import get_logger

log = get_logger(__name__)

Context = Union[Page, FrameLocator, Locator]


# ---------- Strategy → Playwright primitive ----------


def _css(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.locator(value)


def _xpath(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.locator(f"xpath={normalize_xpath(value, relative=scoped)}")


def _text(ctx: Context, value: str, scoped: bool) -> Locator:
    text, exact = parse_text_value(value)
    return ctx.get_by_text(text, exact=exact)


def _role(ctx: Context, value: str, scoped: bool) -> Locator:
    role, name = parse_role_value(value)
    kwargs = {}
    if name:
        kwargs["name"] = name
    return ctx.get_by_role(role, **kwargs)  # type: ignore[arg-type]


def _test_id(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.get_by_test_id(value)


def _placeholder(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.get_by_placeholder(value)


def _alt_text(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.get_by_alt_text(value)


def _title(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.get_by_title(value)


def _label(ctx: Context, value: str, scoped: bool) -> Locator:
    return ctx.get_by_label(value)


STRATEGY_TABLE: Dict[LocatorStrategy, Callable[[Context, str, bool], Locator]] = {
    LocatorStrategy.css: _css,
    LocatorStrategy.xpath: _xpath,
    LocatorStrategy.text: _text,
    LocatorStrategy.role: _role,
    LocatorStrategy.test_id: _test_id,
    LocatorStrategy.placeholder: _placeholder,
    LocatorStrategy.alt_text: _alt_text,
    LocatorStrategy.title: _title,
    LocatorStrategy.label: _label,
}


_RUNNING_ANIMATIONS_JS = """
el => el.getAnimations()
  .filter(a => a.playState === 'running')
  .map(a => ({
    name: a.animationName || a.transitionProperty || a.id || a.constructor.name,
    state: a.playState,
  }))
"""


class PlaywrightDomDriver:
    """
    DomDriver over a Playwright async Page.

    Handles are single-element Locators (members of Locator.all()). A scope is
    either None (the page), a FrameLocator (iframe), or a Locator (a parent
    handle or a shadow host). Probes use a short timeout so a detached handle
    fails fast instead of hanging a poll tick.
    """

    def __init__(self, page: Page, *, probe_timeout_ms: int = 2000) -> None:
        self.page = page
        self.probe_timeout_ms = probe_timeout_ms

    def _context(self, scope: Optional[Any]) -> Context:
        return self.page if scope is None else scope

    def locator_for(self, strategy: LocatorStrategy, value: str, scope: Optional[Any] = None) -> Locator:
        builder = STRATEGY_TABLE.get(strategy)
        if builder is None:
            raise UnsupportedStrategy(strategy)
        return builder(self._context(scope), value, isinstance(scope, Locator))

    async def query(self, strategy: LocatorStrategy, value: str, scope: Optional[Any] = None) -> List[Locator]:
        return await self.locator_for(strategy, value, scope).all()

    async def is_visible(self, handle: Locator) -> bool:
        return await handle.is_visible()

    async def is_enabled(self, handle: Locator) -> bool:
        return await handle.is_enabled(timeout=self.probe_timeout_ms)

    async def bounding_box(self, handle: Locator) -> Optional[Dict[str, float]]:
        return await handle.bounding_box(timeout=self.probe_timeout_ms)

    async def text_content(self, handle: Locator) -> str:
        return (await handle.text_content(timeout=self.probe_timeout_ms)) or ""

    async def input_value(self, handle: Locator) -> str:
        return await handle.input_value(timeout=self.probe_timeout_ms)

    async def get_attribute(self, handle: Locator, name: str) -> Optional[str]:
        return await handle.get_attribute(name, timeout=self.probe_timeout_ms)

    async def resolve_frame(self, selector: str, scope: Optional[Any] = None) -> Union[FrameLocator, Locator]:
        ctx = self._context(scope)
        host = ctx.locator(selector)
        if await host.count() == 0:
            raise FrameNotFound(selector)
        tag = await host.first.evaluate("el => el.tagName", timeout=self.probe_timeout_ms)
        if str(tag).upper() in ("IFRAME", "FRAME"):
            return ctx.frame_locator(selector)
        # Shadow host: Playwright's css engine pierces open shadow roots,
        # so scoping to the host is enough.
        log.debug(f"frame selector {selector!r} is a <{str(tag).lower()}>, scoping to it as a shadow host")
        return host.first

    async def get_animations(self, handle: Locator) -> List[Any]:
        return await handle.evaluate(_RUNNING_ANIMATIONS_JS, timeout=self.probe_timeout_ms)
