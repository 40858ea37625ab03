from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_CONFIG_PATH = "config.json"
ENV_KEYS = ("DISCORD_TOKEN", "DISCORD_CLIENT_ID", "LOG_LEVEL")


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> dict:
    """Read config.json (if any), then let the environment override it.

    Returns a dict with at least DISCORD_TOKEN, DISCORD_CLIENT_ID (int or None)
    and LOG_LEVEL.
    """
    environ = os.environ if environ is None else environ
    explicit = path or environ.get("CONFIG")
    p = Path(explicit or DEFAULT_CONFIG_PATH)

    config: dict = {}
    if p.exists():
        try:
            config = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"{p} is not valid JSON: {e}") from e
        if not isinstance(config, dict):
            raise ValueError(f"{p} must contain a top-level JSON object.")
    elif explicit:
        raise FileNotFoundError(f"Config file '{p}' not found. Create it from 'config.json.example'.")

    for key in ENV_KEYS:
        if environ.get(key):
            config[key] = environ[key]

    token = str(config.get("DISCORD_TOKEN") or "").strip()
    if not token:
        raise RuntimeError("You need to set the DISCORD_TOKEN environment variable (or add it to config.json)")
    config["DISCORD_TOKEN"] = token

    client_id = str(config.get("DISCORD_CLIENT_ID") or "").strip()
    if client_id and not (client_id.isascii() and client_id.isdigit()):
        raise ValueError(f"DISCORD_CLIENT_ID must be numeric, got {client_id!r}")
    config["DISCORD_CLIENT_ID"] = int(client_id) if client_id else None

    level = str(config.get("LOG_LEVEL") or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got {level!r}")
    config["LOG_LEVEL"] = level
    return config
