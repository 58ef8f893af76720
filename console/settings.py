from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

API_BASE_PATH = "/api"
PAGE_SIZE = 10
SESSION_TOKEN_KEY = "token"
SYNC_INTERVAL_MIN = 1
SYNC_INTERVAL_MAX = 1440

DEFAULT_SETTINGS_PATH = os.getenv("CONSOLE_SETTINGS", "console.yaml")
DEFAULT_STATE_PATH = str(Path.home() / ".vulnfeed-console" / "state.db")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def load_yaml(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def resolve_settings(path: str | None = None) -> dict[str, Any]:
    settings: dict[str, Any] = {}
    if path and Path(path).exists():
        settings = load_yaml(path)
    settings.setdefault("api", {})
    settings.setdefault("session", {})
    settings.setdefault("query", {})
    settings.setdefault("logging", {})
    settings["api"].setdefault("base_url", os.getenv("CONSOLE_BASE_URL", "http://127.0.0.1:9000"))
    settings["api"].setdefault("timeout_seconds", float(os.getenv("CONSOLE_TIMEOUT_SECONDS", "10")))
    settings["session"].setdefault("state_path", os.getenv("CONSOLE_STATE_PATH", DEFAULT_STATE_PATH))
    settings["session"]["token_key"] = SESSION_TOKEN_KEY
    settings["query"]["page_size"] = PAGE_SIZE
    settings["query"].setdefault("debounce_ms", int(os.getenv("CONSOLE_DEBOUNCE_MS", "300")))
    settings["logging"].setdefault("level", os.getenv("LOG_LEVEL", "INFO"))
    return settings
