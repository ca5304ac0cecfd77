# -*- coding: utf-8 -*-
"""Configuration management (JSON on disk, merged over defaults)."""
from __future__ import annotations

from typing import Dict
from pathlib import Path
import json
import os

APP_NAME = "vaultjournal"

DEFAULT_CONFIG: Dict[str, object] = {
    # Relay base URL; empty means local-only unless the vault carries one
    "endpoint": "",
    "debounce_seconds": 5.0,
    "request_timeout": 30.0,
    # Force local-only mode (no network calls at all)
    "offline": False,
    "log_level": "WARNING",
}


def config_dir() -> Path:
    """Return the config directory path for this platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA", os.path.expanduser("~\\AppData\\Roaming"))
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(base) / APP_NAME


def _config_path() -> Path:
    return config_dir() / "config.json"


def load_config() -> Dict[str, object]:
    """Load the merged configuration (defaults + file)."""
    path = _config_path()
    if not path.exists():
        save_config(DEFAULT_CONFIG)
        return json.loads(json.dumps(DEFAULT_CONFIG))
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    merged = json.loads(json.dumps(DEFAULT_CONFIG))
    merged.update(data)
    return merged


def save_config(cfg: Dict[str, object]) -> None:
    """Persist *cfg* to the JSON config file."""
    config_dir().mkdir(parents=True, exist_ok=True)
    with _config_path().open("w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2)
