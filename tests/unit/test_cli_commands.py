import json
import logging
import textwrap
from pathlib import Path

from click.testing import CliRunner

import elementsync.cli as cli_module
from elementsync.cli import cli
from elementsync.core.errors import ElementNotFound


def write_catalog(tmp_path: Path) -> Path:
    y = textwrap.dedent(
        """
        elements:
          login_form: "form#login"
          submit:
            parent: login_form
            strategy: role
            value: "button|Sign in"
        """
    )
    p = tmp_path / "elements.yaml"
    p.write_text(y, encoding="utf-8")
    return p


def test_cli_config_prints_json():
    result = CliRunner().invoke(cli, ["config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["POLL_INTERVAL_MS"] >= 1
    assert data["RETRY_BACKOFF"] in {"none", "linear", "exponential"}


def test_cli_parse_target():
    result = CliRunner().invoke(cli, ["parse", "role=button|Save"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["label"] == "role:button|Save"
    assert data["descriptor"]["strategy"] == "role"
    assert data["descriptor"]["value"] == "button|Save"
    assert "parent" not in data["descriptor"]


def test_cli_parse_rejects_empty_target():
    result = CliRunner().invoke(cli, ["parse", "   "])
    assert result.exit_code == 1
    assert result.output.startswith("ERR ")


def test_cli_catalog_lists_elements(tmp_path: Path):
    p = write_catalog(tmp_path)
    result = CliRunner().invoke(cli, ["catalog", str(p)])
    assert result.exit_code == 0
    assert "Found 2 element(s)" in result.output
    assert " - submit  ->  css:form#login >> role:button|Sign in" in result.output


def test_cli_catalog_reports_errors(tmp_path: Path):
    p = tmp_path / "bad.yaml"
    p.write_text("elements:\n  a:\n    parent: ghost\n    value: x\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["catalog", str(p)])
    assert result.exit_code == 1
    assert "elements.a.parent: unknown element 'ghost'" in result.output


def test_cli_probe_prints_result(monkeypatch, tmp_path: Path):
    seen = {}

    async def fake_probe(url, target, state, timeout_ms, settings):
        seen.update(url=url, label=target.label, state=state, timeout_ms=timeout_ms, headless=settings.HEADLESS)
        return {"ok": True, "target": target.label, "state": state, "elapsed_ms": 120, "attempts": 1, "matches": []}

    monkeypatch.setattr(cli_module, "_probe", fake_probe)
    p = write_catalog(tmp_path)
    result = CliRunner().invoke(
        cli,
        ["probe", "https://demo.app", "submit", "--catalog", str(p), "--state", "enabled", "--timeout-ms", "750", "--headed"],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["elapsed_ms"] == 120
    assert seen == {
        "url": "https://demo.app",
        "label": "submit",
        "state": "enabled",
        "timeout_ms": 750,
        "headless": False,
    }


def test_cli_probe_failure_exits_with_error_class(monkeypatch):
    async def fake_probe(url, target, state, timeout_ms, settings):
        err = ElementNotFound("css:#banner not found within 3000 ms")
        err.attempts, err.elapsed_ms = 1, 3000
        raise err

    monkeypatch.setattr(cli_module, "_probe", fake_probe)
    result = CliRunner().invoke(cli, ["probe", "https://demo.app", "#banner", "--timeout-ms", "3000"])

    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["ok"] is False
    assert data["error"] == "ElementNotFound"
    assert (data["attempts"], data["elapsed_ms"]) == (1, 3000)


def test_cli_probe_log_file_is_detached_afterwards(monkeypatch, tmp_path: Path):
    async def fake_probe(url, target, state, timeout_ms, settings):
        logging.getLogger("elementsync.probe").warning("slow page")
        return {"ok": True}

    monkeypatch.setattr(cli_module, "_probe", fake_probe)
    log_path = tmp_path / "logs" / "probe.log"
    result = CliRunner().invoke(cli, ["probe", "https://demo.app", "#x", "--log-file", str(log_path)])

    assert result.exit_code == 0, result.output
    assert "slow page" in log_path.read_text(encoding="utf-8")
    assert not [h for h in logging.getLogger().handlers if getattr(h, "baseFilename", None) == str(log_path)]
