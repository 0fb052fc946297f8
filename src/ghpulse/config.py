from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .client import API_URL

DEFAULT_PREFS_PATH = Path.home() / ".config" / "ghpulse" / "prefs.json"


@dataclass(frozen=True)
class Settings:
    token: str | None
    api_url: str
    prefs_path: Path
    log_level: str


def load_settings() -> Settings:
    """Read settings from the environment (a .env file is loaded by the CLI first)."""
    prefs_path = os.environ.get("GHPULSE_PREFS_PATH")
    return Settings(
        token=os.environ.get("GITHUB_TOKEN") or None,
        api_url=os.environ.get("GHPULSE_API_URL") or API_URL,
        prefs_path=Path(prefs_path).expanduser() if prefs_path else DEFAULT_PREFS_PATH,
        log_level=(os.environ.get("GHPULSE_LOG_LEVEL") or "WARNING").upper(),
    )
