# elementsync/capture/screenshot.py
from __future__ import annotations

"""Failure screenshots
---------------------
An async on_failure hook for the dispatcher: when an acquisition fails, save a
page screenshot named after the error type and the element label.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from playwright.async_api import Page

from elementsync.utils.config import Settings, get_settings
from elementsync.utils.logger import get_logger
from elementsync.utils.timing import measure


@dataclass
class CaptureResult:
    path: Path
    error: str           # error class name
    label: str           # element label
    url: str
    ts: str              # ISO timestamp


class FailureScreenshotter:
    """
    Call it with (descriptor, error). Files land in `out_dir`
    (SCREENSHOT_DIR by default) as <ErrorType>-<label>-<timestamp>.<fmt>.
    """

    def __init__(self, page: Page, out_dir: Optional[Path] = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.page = page
        self.out_dir = Path(out_dir) if out_dir is not None else self.settings.SCREENSHOT_DIR
        self.log = get_logger(__name__)
        self.captures: List[CaptureResult] = []

    @measure("failure_screenshot")
    async def __call__(self, descriptor: Any, error: BaseException) -> CaptureResult:
        fmt = self.settings.SCREENSHOT_FORMAT.value
        label = getattr(descriptor, "label", None) or "element"
        err_name = type(error).__name__
        ts = self._ts()

        out_path = self._build_path(f"{err_name}-{label}-{ts}", fmt)
        await self.page.screenshot(
            path=str(out_path),
            type=fmt,
            full_page=True,
            quality=(self.settings.SCREENSHOT_QUALITY if fmt == "jpeg" else None),
        )
        result = CaptureResult(path=out_path, error=err_name, label=label, url=self.page.url, ts=ts)
        self.captures.append(result)
        self.log.info(f"Saved failure screenshot: {out_path}")
        return result

    # ----------- Internals -----------

    def _build_path(self, base: str, ext: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in ("-", "_") else "_" for ch in base)[:150]
        out_path = self.out_dir / f"{safe}.{ext}"
        out_path.parent.mkdir(parents=True, exist_ok=True)
        return out_path

    @staticmethod
    def _ts() -> str:
        return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


__all__ = ["CaptureResult", "FailureScreenshotter"]
