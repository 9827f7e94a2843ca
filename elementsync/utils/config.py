# elementsync/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class BrowserType(str, Enum):
    chromium = "chromium"
    firefox = "firefox"
    webkit = "webkit"


class ScreenshotFormat(str, Enum):
    png = "png"
    jpeg = "jpeg"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BackoffKind(str, Enum):
    none = "none"
    linear = "linear"
    exponential = "exponential"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for the element synchronization engine.

    Values load in this order of precedence:
      1) Environment variables
      2) .env file in project root
      3) Defaults below
    """

    # ---- Resolution & waits ----
    DEFAULT_TIMEOUT_MS: int = Field(default=10000, ge=0, description="Per-acquisition wait budget")
    POLL_INTERVAL_MS: int = Field(default=100, ge=1, description="Condition polling interval")
    STRICT_MODE: bool = Field(default=False, description="Reject ambiguous matches without a position selector")
    STABILITY_POLLS: int = Field(default=2, ge=2, description="Consecutive unchanged polls for 'stable'")

    # ---- Retry & error handling ----
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    RETRY_BASE_DELAY_MS: int = Field(default=100, ge=0)
    RETRY_BACKOFF: BackoffKind = Field(default=BackoffKind.exponential)
    RETRY_TOTAL_TIMEOUT_MS: int = Field(default=30000, ge=0)
    RETRY_MAX_DELAY_MS: Optional[int] = Field(default=None, ge=0, description="Cap for a single backoff delay")

    # ---- Browser (CLI probe only) ----
    HEADLESS: bool = Field(default=True, description="Run the browser headless")
    BROWSER_TYPE: BrowserType = Field(default=BrowserType.chromium, description="Playwright browser")
    PAGE_LOAD_TIMEOUT: int = Field(default=60000, ge=1000)

    # ---- Failure screenshots ----
    SCREENSHOT_ON_FAILURE: bool = Field(default=False)
    SCREENSHOT_DIR: Path = Field(default=Path("./artifacts/screenshots"))
    SCREENSHOT_FORMAT: ScreenshotFormat = Field(default=ScreenshotFormat.png)
    SCREENSHOT_QUALITY: int = Field(default=90, ge=1, le=100)

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./elementsync.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore unknown envs to keep things flexible
    )

    @field_validator("SCREENSHOT_DIR", "LOG_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if isinstance(v, Path):
            return v
        return Path(str(v)) if v is not None else v

    @field_validator("SCREENSHOT_DIR", "LOG_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Path, info):
        return v if v.is_absolute() else Path.cwd() / v

    def ensure_dirs(self) -> None:
        """Create output directories (idempotent). Only needed when artifacts are written."""
        dirs = {self.LOG_FILE.parent}
        if self.SCREENSHOT_ON_FAILURE:
            dirs.add(self.SCREENSHOT_DIR)
        for p in dirs:
            p.mkdir(parents=True, exist_ok=True)

    # Convenience: Playwright launch options dict
    def playwright_launch_kwargs(self) -> dict:
        return {"headless": self.HEADLESS}


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    return Settings()
