"""Configuration constants for the browser test runner."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Values below are read from the environment once, at import; a .env file in
# the working directory is merged in first.
load_dotenv()


def _parse_bool(env_var: str, default: bool) -> bool:
    """Return a boolean flag from the environment ("0"/"false"/"no" are off)."""

    raw = os.getenv(env_var)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _parse_int(env_var: str, default: int) -> int:
    try:
        return int(os.getenv(env_var, str(default)))
    except ValueError:
        return default


def _parse_extensions(raw: str) -> tuple[str, ...]:
    exts = []
    for part in raw.split(","):
        part = part.strip().lower()
        if not part:
            continue
        exts.append(part if part.startswith(".") else f".{part}")
    return tuple(exts) or (".py",)


def parse_viewport(raw: str | None) -> Optional[dict[str, int]]:
    """Parse ``WIDTHxHEIGHT`` into a Playwright viewport mapping.

    Empty or malformed values return ``None`` (no fixed viewport).
    """

    if not raw:
        return None
    parts = raw.lower().replace(" ", "").split("x")
    if len(parts) != 2:
        return None
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return {"width": width, "height": height}


DATA_DIR: Path = Path(os.getenv("AUTOTEST_DATA_DIR", "data"))
LOG_DIR: Path = Path(os.getenv("AUTOTEST_LOG_DIR", str(DATA_DIR / "logs")))
RUNS_DIR: Path = Path(os.getenv("RUNS_DIR", str(DATA_DIR / "runs")))
EXPORTS_DIR: Path = Path(os.getenv("EXPORTS_DIR", str(DATA_DIR / "exports")))
MAX_EXPORTS: int = _parse_int("EXPORTS_KEEP_MAX", 5)

# Case discovery
CASES_DIR: str = os.getenv("AUTOTEST_CASES_DIR", "cases")
# Prefix stripped from discovered paths; such references resolve against it.
SOURCE_ROOT: str = os.getenv("AUTOTEST_SOURCE_ROOT", "src")
CASE_EXTENSIONS: tuple[str, ...] = _parse_extensions(
    os.getenv("AUTOTEST_CASE_EXTENSIONS", ".py")
)

# Browser / engine
MAX_CONCURRENCY: int = _parse_int("AUTOTEST_MAX_CONCURRENCY", 10)
HEADLESS: bool = _parse_bool("AUTOTEST_HEADLESS", False)
RETRY_COUNT: int = _parse_int("AUTOTEST_RETRY_COUNT", 0)
BROWSER_PATH: Optional[str] = os.getenv("AUTOTEST_BROWSER_PATH") or None
START_MAXIMIZED: bool = _parse_bool("AUTOTEST_START_MAXIMIZED", False)
TEMP_PROFILE: bool = _parse_bool("AUTOTEST_TEMP_PROFILE", False)
VIEWPORT: Optional[dict[str, int]] = parse_viewport(os.getenv("AUTOTEST_VIEWPORT", ""))
SKIP_DUPLICATES: bool = _parse_bool("AUTOTEST_SKIP_DUPLICATES", False)

# Navigation timeout in milliseconds; 0 disables it (Playwright semantics).
NAV_TIMEOUT_MS: int = _parse_int("AUTOTEST_NAV_TIMEOUT_MS", 0)
WAIT_UNTIL: str = os.getenv("AUTOTEST_WAIT_UNTIL", "networkidle").strip().lower()
# Settle time after navigation before the case routine runs.
WAIT_FOR_MS: int = _parse_int("AUTOTEST_WAIT_FOR_MS", 500)

WAIT_UNTIL_CHOICES = frozenset({"load", "domcontentloaded", "networkidle", "commit"})

BASE_BROWSER_ARGS: tuple[str, ...] = (
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-web-security",
)


@dataclass(frozen=True)
class EngineSettings:
    """Snapshot of the engine-facing settings, read once per run."""

    max_concurrency: int
    headless: bool
    retry_count: int
    executable_path: Optional[str]
    viewport: Optional[dict[str, int]]
    args: tuple[str, ...]
    timeout_ms: int
    wait_until: str
    wait_for_ms: int
    skip_duplicates: bool
    cases_dir: str


def browser_args() -> tuple[str, ...]:
    """Return the Chromium launch flags for the current configuration."""

    args = list(BASE_BROWSER_ARGS)
    if START_MAXIMIZED:
        args.append("--start-maximized")
    if TEMP_PROFILE:
        args.append("--temp-profile")
    return tuple(args)


def load_engine_settings() -> EngineSettings:
    """Build an :class:`EngineSettings` from the module-level values."""

    return EngineSettings(
        max_concurrency=MAX_CONCURRENCY,
        headless=HEADLESS,
        retry_count=RETRY_COUNT,
        executable_path=BROWSER_PATH,
        viewport=VIEWPORT,
        args=browser_args(),
        timeout_ms=NAV_TIMEOUT_MS,
        wait_until=WAIT_UNTIL,
        wait_for_ms=WAIT_FOR_MS,
        skip_duplicates=SKIP_DUPLICATES,
        cases_dir=CASES_DIR,
    )
