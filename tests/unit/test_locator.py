from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Locator

from elementsync.core.errors import FrameNotFound, UnsupportedStrategy
from elementsync.selectors.descriptor import LocatorStrategy
from elementsync.selectors.locator import STRATEGY_TABLE, PlaywrightDomDriver


def test_every_strategy_has_a_builder():
    assert set(STRATEGY_TABLE) == set(LocatorStrategy)


def test_strategies_map_to_playwright_primitives():
    page = MagicMock()
    driver = PlaywrightDomDriver(page)

    driver.locator_for(LocatorStrategy.role, "button|Save")
    page.get_by_role.assert_called_once_with("button", name="Save")

    driver.locator_for(LocatorStrategy.role, "dialog")
    page.get_by_role.assert_called_with("dialog")

    driver.locator_for(LocatorStrategy.text, "=Sign in")
    page.get_by_text.assert_called_once_with("Sign in", exact=True)

    driver.locator_for(LocatorStrategy.test_id, "cart-count")
    page.get_by_test_id.assert_called_once_with("cart-count")

    driver.locator_for(LocatorStrategy.xpath, "button[@type='submit']")
    page.locator.assert_called_once_with("xpath=//button[@type='submit']")


def test_xpath_is_relative_under_a_parent_handle():
    parent = MagicMock(spec=Locator)
    PlaywrightDomDriver(MagicMock()).locator_for(LocatorStrategy.xpath, "//td", scope=parent)
    parent.locator.assert_called_once_with("xpath=.//td")


def test_unknown_strategy_is_rejected():
    with pytest.raises(UnsupportedStrategy):
        PlaywrightDomDriver(MagicMock()).locator_for("sizzle", ".x")


@pytest.mark.asyncio
async def test_query_returns_single_element_locators():
    page = MagicMock()
    handles = [MagicMock(), MagicMock()]
    page.locator.return_value.all = AsyncMock(return_value=handles)

    assert await PlaywrightDomDriver(page).query(LocatorStrategy.css, "li") == handles
    page.locator.assert_called_once_with("li")


@pytest.mark.asyncio
async def test_missing_frame_raises():
    page = MagicMock()
    page.locator.return_value.count = AsyncMock(return_value=0)

    with pytest.raises(FrameNotFound) as ei:
        await PlaywrightDomDriver(page).resolve_frame("iframe#editor")
    assert ei.value.selector == "iframe#editor"


@pytest.mark.asyncio
async def test_iframe_and_shadow_host_scopes():
    page = MagicMock()
    host = page.locator.return_value
    host.count = AsyncMock(return_value=1)
    host.first.evaluate = AsyncMock(return_value="IFRAME")
    driver = PlaywrightDomDriver(page)

    assert await driver.resolve_frame("iframe#editor") is page.frame_locator.return_value
    page.frame_locator.assert_called_once_with("iframe#editor")

    host.first.evaluate = AsyncMock(return_value="MY-WIDGET")
    assert await driver.resolve_frame("my-widget") is host.first


@pytest.mark.asyncio
async def test_text_content_of_empty_node_is_empty_string():
    handle = MagicMock()
    handle.text_content = AsyncMock(return_value=None)
    assert await PlaywrightDomDriver(MagicMock(), probe_timeout_ms=50).text_content(handle) == ""
    handle.text_content.assert_awaited_once_with(timeout=50)


@pytest.mark.asyncio
async def test_value_and_attribute_reads_use_the_short_timeout():
    handle = MagicMock()
    handle.input_value = AsyncMock(return_value="ada@example.com")
    handle.get_attribute = AsyncMock(return_value="email")
    driver = PlaywrightDomDriver(MagicMock(), probe_timeout_ms=50)

    assert await driver.input_value(handle) == "ada@example.com"
    assert await driver.get_attribute(handle, "type") == "email"
    handle.input_value.assert_awaited_once_with(timeout=50)
    handle.get_attribute.assert_awaited_once_with("type", timeout=50)
