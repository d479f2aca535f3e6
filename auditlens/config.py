from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


API_TOKEN = os.getenv("API_TOKEN", "").strip()
LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
EVOLUTION_DEFAULT_PERIOD = (os.getenv("EVOLUTION_DEFAULT_PERIOD") or "30d").strip()
EVOLUTION_MAX_LIMIT = _int_env("EVOLUTION_MAX_LIMIT", 50)
