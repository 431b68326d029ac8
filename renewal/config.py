# Role: Central configuration module. Loads .env into environment variables and computes runtime flags (DEBUG).
# Importers read renewal.config.DEBUG to control diagnostics without threading flags through every call.

from __future__ import annotations

import os
from dotenv import load_dotenv

DEBUG: bool = False

DEFAULT_BACKEND_URL = "http://127.0.0.1:8000"


def load_env() -> None:
    """
    Load .env into os.environ, then recompute DEBUG.
    This makes DEBUG correct even if load_env() is called after import.
    """
    global DEBUG
    load_dotenv()
    # Key line: accept common truthy values.
    DEBUG = os.getenv("DEBUG", "0").lower() in {"1", "true", "yes"}


def payment_ttl_minutes() -> int:
    try:
        return max(1, int(os.getenv("PAYMENT_TTL_MINUTES", "30")))
    except ValueError:
        return 30


def backend_url() -> str:
    return os.getenv("RENEWAL_BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")
