"""Centralized configuration for the LY Fantasy application.

All settings live here so they can be overridden by environment variables or a
``.env`` file without touching source code.

**Profile system:** Set ``LYF_PROFILE=dev`` (default) or ``LYF_PROFILE=prod``
to get sensible defaults for each environment.  Any individual ``LYF_*`` var
still overrides the profile value.

Usage::

    from ly_fantasy.config import DATABASE_URL, TERM

    url = f"{GOVAPI_BASE}/legislators/{TERM}/{name}/propose_bills"
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from current working directory (project root when running uvicorn / scripts)
load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile: one knob for the whole environment ──────────────────────────────

PROFILE: str = os.getenv("LYF_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "LYF_DATABASE_URL": "sqlite:///ly_fantasy.db",
        "LYF_REQUEST_DELAY": "0.25",
        "LYF_CORS_ORIGINS": "*",
    },
    "prod": {
        "LYF_DATABASE_URL": "",  # empty → must be explicitly set
        "LYF_REQUEST_DELAY": "1.0",
        "LYF_CORS_ORIGINS": "",
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown LYF_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


# ── Storage ──────────────────────────────────────────────────────────────────
DATABASE_URL: str = _env("LYF_DATABASE_URL", "sqlite:///ly_fantasy.db").strip()

# ── Legislative Yuan term ────────────────────────────────────────────────────
# 11th Legislative Yuan (2024-2028).
TERM: int = int(_env("LYF_TERM", "11"))

# ── Upstream APIs ────────────────────────────────────────────────────────────
GOVAPI_BASE: str = _env("LYF_GOVAPI_BASE", "https://ly.govapi.tw/v2").rstrip("/")
OPEN_DATA_BASE: str = _env(
    "LYF_OPEN_DATA_BASE", "https://data.ly.gov.tw/odw/openDatasetJson.action"
)
SPEECH_API: str = _env("LYF_SPEECH_API", "https://www.ly.gov.tw/WebAPI/LegislativeSpeech.aspx")

# Open-data dataset ids
ROSTER_DATASET_ID: int = 9
ROLLCALL_DATASET_ID: int = 370

# ── Request pacing ───────────────────────────────────────────────────────────
REQUEST_DELAY: float = float(_env("LYF_REQUEST_DELAY", "0.25"))
TIMEOUT_SECONDS: int = int(_env("LYF_TIMEOUT", "20"))
# Days of floor speeches pulled per run when no window is given.
FLOOR_SPEECH_WINDOW_DAYS: int = int(_env("LYF_FLOOR_SPEECH_DAYS", "30"))

# ── Security / network ──────────────────────────────────────────────────────
CORS_ORIGINS: str = _env("LYF_CORS_ORIGINS").strip()
API_KEY: str = _env("LYF_API_KEY").strip()
CRON_SECRET: str = os.getenv("CRON_SECRET", "").strip()

# ── Run log ──────────────────────────────────────────────────────────────────
RUN_LOG_PATH: Path = Path(_env("LYF_RUN_LOG", ".run_log.jsonl"))

# ── Production guard ─────────────────────────────────────────────────────────
if PROFILE == "prod":
    if not DATABASE_URL:
        LOGGER.warning("LYF_PROFILE=prod but LYF_DATABASE_URL is empty.")
    if CORS_ORIGINS in ("*", ""):
        LOGGER.warning(
            "LYF_PROFILE=prod but LYF_CORS_ORIGINS=%r. "
            "Set it to your front-end origin(s) for security.",
            CORS_ORIGINS,
        )
    if not CRON_SECRET:
        LOGGER.warning("LYF_PROFILE=prod but CRON_SECRET is empty. /api/refresh-data is closed.")
