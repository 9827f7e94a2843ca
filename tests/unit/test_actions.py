import pytest

from elementsync.core.actions import ElementActions
from elementsync.core.errors import ConditionTimeout, ElementNotFound


@pytest.fixture
def actions(engine):
    return ElementActions(engine, timeout_ms=1000)


@pytest.mark.asyncio
async def test_click_waits_for_enabled_then_clicks(actions, dom):
    save = dom.element("save", enabled_from=300)
    dom.add("#save", save)

    result = await actions.click("#save")

    assert result.ok and result.condition == "enabled"
    assert result.elapsed_ms == 300
    assert result.attempts == 1
    assert save.actions == [("click", None)]


@pytest.mark.asyncio
async def test_click_passes_options_through(actions, dom):
    menu = dom.element("menu")
    dom.add("#menu", menu)
    await actions.click("#menu", button="right")
    assert menu.actions == [("click", {"button": "right"})]


@pytest.mark.asyncio
async def test_fill_retries_a_failed_handle_call(actions, dom, sleep):
    field = dom.element("email", fail_next=1)
    dom.add("#email", field)

    result = await actions.fill("#email", "ada@example.com")

    assert result.attempts == 2
    assert sleep.calls == [100]
    assert field.text == "ada@example.com"
    assert field.actions == [("fill", "ada@example.com")]


@pytest.mark.asyncio
async def test_non_idempotent_actions_run_once(actions, dom):
    field = dom.element("search", fail_next=1)
    dom.add("#search", field)

    with pytest.raises(RuntimeError, match="element detached"):
        await actions.type_text("#search", "shoes")
    assert field.actions == []


@pytest.mark.asyncio
async def test_acquisition_failures_are_not_retried_twice(actions, clock):
    with pytest.raises(ElementNotFound):
        await actions.hover("#missing")
    assert clock() == 1000


@pytest.mark.asyncio
async def test_disabled_control_times_out_on_its_condition(actions, dom):
    dom.add("#pay", dom.element("pay", enabled=False))
    with pytest.raises(ConditionTimeout) as ei:
        await actions.check("#pay", timeout_ms=200)
    assert ei.value.condition_names == ["enabled(css:#pay)"]


@pytest.mark.asyncio
async def test_form_helpers(actions, dom):
    country = dom.element("country")
    terms = dom.element("terms")
    notes = dom.element("notes", text="draft")
    dom.add("select#country", country)
    dom.add("#terms", terms)
    dom.add("#notes", notes)

    picked = await actions.select_option("select#country", label="Norway")
    await actions.check("#terms")
    await actions.uncheck("#terms")
    await actions.clear("#notes")
    await actions.press("#notes", "Enter")
    await actions.double_click("#notes")

    assert picked.data == ["Norway"]
    assert country.actions == [("select_option", "Norway")]
    assert terms.actions == [("check", None), ("uncheck", None)]
    assert notes.text == ""
    assert notes.actions == [("clear", None), ("press", "Enter"), ("dblclick", None)]


@pytest.mark.asyncio
async def test_text_reads_attached_elements(actions, dom):
    dom.add("#status", dom.element("status", text="Saved", visible=False))
    result = await actions.text("#status")
    assert result.condition == "attached"
    assert result.data == "Saved"
