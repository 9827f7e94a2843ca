import textwrap
from pathlib import Path

import pytest

from elementsync.core.catalog import load_catalog, parse_catalog
from elementsync.core.errors import CatalogError
from elementsync.selectors.descriptor import LocatorStrategy


def write_catalog(tmp_path: Path, body: str) -> Path:
    p = tmp_path / "elements.yaml"
    p.write_text(textwrap.dedent(body), encoding="utf-8")
    return p


def test_load_catalog_with_parents_and_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("USER_FIELD_ID", "username")
    p = write_catalog(
        tmp_path,
        """
        elements:
          submit:
            parent: login_form
            strategy: role
            value: "button|Sign in"
          login_form:
            strategy: css
            value: "form#login"
          user_field: "testid=${USER_FIELD_ID}"
          rows:
            value: "tr"
            last: true
            filters:
              has_text: Paid
        """,
    )
    catalog = load_catalog(p)

    assert catalog.names() == ["submit", "login_form", "user_field", "rows"]
    submit = catalog.get("submit")
    assert submit.strategy is LocatorStrategy.role
    assert submit.parent == catalog.get("login_form")
    assert submit.label == "submit"
    assert catalog.get("user_field").value == "username"
    assert catalog.get("rows").last and catalog.get("rows").filters.has_text == "Paid"
    assert "rows" in catalog and len(catalog) == 4


def test_unknown_element_name():
    catalog = parse_catalog({"elements": {"a": "#a"}})
    with pytest.raises(CatalogError, match="unknown element 'b'"):
        catalog.get("b")


def test_errors_are_reported_per_element(tmp_path: Path):
    p = write_catalog(
        tmp_path,
        """
        elements:
          ok: "#ok"
          both_ends:
            value: ".x"
            first: true
            last: true
          weird:
            strategy: sizzle
            value: ".x"
          orphan:
            parent: nowhere
            value: ".x"
          negative:
            value: "li"
            index: -2
        """,
    )
    with pytest.raises(CatalogError) as ei:
        load_catalog(p)
    msg = str(ei.value)
    assert msg.startswith(f"Invalid catalog '{p}':")
    assert "elements.both_ends" in msg and "mutually exclusive" in msg
    assert "elements.weird" in msg and "sizzle" in msg
    assert "elements.orphan.parent: unknown element 'nowhere'" in msg
    assert "elements.negative.index" in msg
    assert "elements.ok" not in msg


def test_parent_cycles_are_rejected():
    with pytest.raises(CatalogError, match="parent cycle: a -> b -> a"):
        parse_catalog(
            {
                "elements": {
                    "a": {"value": ".a", "parent": "b"},
                    "b": {"value": ".b", "parent": "a"},
                }
            }
        )


def test_top_level_shape_is_checked(tmp_path: Path):
    with pytest.raises(CatalogError):
        parse_catalog(["not", "a", "mapping"])
    with pytest.raises(CatalogError):
        parse_catalog({"elements": {}})
    with pytest.raises(CatalogError, match="YAML parse error"):
        load_catalog(write_catalog(tmp_path, "elements: [unclosed\n"))
    with pytest.raises(FileNotFoundError):
        load_catalog(tmp_path / "missing.yaml")
