# elementsync/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Inspect settings, parse targets, validate descriptor catalogs, and probe a
live page for an element state. Thin wrapper around the engine for local runs.
"""

import asyncio
import json
import sys
from typing import Any, Dict, Optional

import click

from elementsync.core.catalog import load_catalog
from elementsync.core.errors import ElementSyncError
from elementsync.detection.conditions import ElementState
from elementsync.selectors.descriptor import coerce_target
from elementsync.utils.config import Settings, get_settings
from elementsync.utils.logger import attach_file_logger, detach_file_logger, get_logger, set_log_level


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _descriptor_json(d) -> Dict[str, Any]:
    return {"label": d.label, "descriptor": d.model_dump(mode="json", exclude_defaults=True)}


async def _probe(url: str, target: Any, state: str, timeout_ms: int, settings: Settings) -> Dict[str, Any]:
    """Launch a browser, open `url` and acquire `target` in `state`."""
    from playwright.async_api import async_playwright

    from elementsync.core.engine import ElementEngine

    settings.ensure_dirs()
    async with async_playwright() as p:
        browser_type = getattr(p, settings.BROWSER_TYPE.value)
        browser = await browser_type.launch(**settings.playwright_launch_kwargs())
        try:
            page = await browser.new_page()
            await page.goto(url, wait_until="domcontentloaded", timeout=settings.PAGE_LOAD_TIMEOUT)
            engine = ElementEngine.for_page(page, settings)
            acquired = await engine.acquire(target, state, timeout_ms=timeout_ms)
            return {
                "ok": True,
                "target": acquired.descriptor.label,
                "state": acquired.condition,
                "elapsed_ms": acquired.elapsed_ms,
                "attempts": acquired.attempts,
                "matches": await engine.describe(acquired.descriptor),
            }
        finally:
            await browser.close()


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="elementsync")
def cli(log_level: Optional[str]):
    # Initialize settings + logger once at process start
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    _echo_json(get_settings().model_dump(mode="json"))


@cli.command("parse")
@click.argument("target")
def cmd_parse(target: str):
    """
    Show the descriptor a target string turns into.

    Examples:
      elementsync parse "role=button|Save"
      elementsync parse "//div[@id='main']"
    """
    try:
        d = coerce_target(target)
    except (ElementSyncError, ValueError) as e:
        click.echo(f"ERR {e}")
        sys.exit(1)
    _echo_json(_descriptor_json(d))


@cli.command("catalog")
@click.argument("path", type=click.Path(dir_okay=False, exists=True))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print descriptors as JSON")
def cmd_catalog(path: str, as_json: bool):
    """Validate a descriptor catalog and list its elements."""
    try:
        catalog = load_catalog(path)
    except ElementSyncError as e:
        click.echo(f"ERR {e}")
        sys.exit(1)

    if as_json:
        _echo_json({name: _descriptor_json(catalog.get(name)) for name in catalog.names()})
        return
    click.echo(f"Found {len(catalog)} element(s) in {path}:\n")
    for name in catalog.names():
        d = catalog.get(name)
        chain = " >> ".join(f"{n.strategy.value}:{n.value}" for n in d.chain())
        click.echo(f" - {name}  ->  {chain}")


@cli.command("probe")
@click.argument("url")
@click.argument("target")
@click.option(
    "--state",
    type=click.Choice([s.value for s in ElementState]),
    default=ElementState.visible.value,
    show_default=True,
    help="State to wait for",
)
@click.option("--timeout-ms", type=int, default=None, help="Override DEFAULT_TIMEOUT_MS from settings")
@click.option("--catalog", "catalog_path", type=click.Path(dir_okay=False, exists=True), default=None,
              help="Treat TARGET as an element name from this catalog")
@click.option("--headed", is_flag=True, default=False, help="Show the browser window")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write JSON logs for this probe to a file")
def cmd_probe(
    url: str,
    target: str,
    state: str,
    timeout_ms: Optional[int],
    catalog_path: Optional[str],
    headed: bool,
    log_file: Optional[str],
):
    """
    Open URL and wait for TARGET to reach a state. Prints a JSON result.

    Examples:
      elementsync probe https://example.com "text=More information" --state visible
      elementsync probe https://example.com submit --catalog elements.yaml
    """
    settings = get_settings()
    log = get_logger(__name__)
    if headed:
        settings = settings.model_copy(update={"HEADLESS": False})
    timeout = timeout_ms if timeout_ms is not None else settings.DEFAULT_TIMEOUT_MS
    handler = attach_file_logger(log_file) if log_file else None

    try:
        resolved_target: Any = load_catalog(catalog_path).get(target) if catalog_path else coerce_target(target)
        result = asyncio.run(_probe(url, resolved_target, state, timeout, settings))
    except ValueError as e:
        click.echo(f"ERR {e}")
        sys.exit(2)
    except ElementSyncError as e:
        log.debug(f"probe failed: {e!r}")
        _echo_json({
            "ok": False,
            "error": type(e).__name__,
            "message": str(e),
            "attempts": e.attempts,
            "elapsed_ms": e.elapsed_ms,
        })
        sys.exit(1)
    finally:
        if handler is not None:
            detach_file_logger(handler)

    _echo_json(result)


def main() -> None:
    cli(prog_name="elementsync")


if __name__ == "__main__":
    main()
