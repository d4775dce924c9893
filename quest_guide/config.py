"""Runtime configuration.

Settings come from environment variables, with a project-level .env file
loaded first. Nothing reads the environment after load_settings() returns:
the Settings object is passed explicitly into the assistant client, the
harness and the session so tests can point them at mock endpoints.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ROOT = Path(__file__).parent.parent
DEFAULT_CATALOG = Path(__file__).parent / "data" / "quests.json"


class Settings(BaseModel):
    assistant_url: str = ""  # empty → offline ScriptedAssistant
    assistant_api_key: str = ""
    assistant_timeout: float = 120.0
    request_timeout: float = 30.0
    catalog_path: Path = DEFAULT_CATALOG
    forward_outcomes: bool = True
    host: str = "127.0.0.1"
    port: int = 13013


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw not in ("0", "false", "no", "off")


def load_settings(env_file: Path | None = None) -> Settings:
    """Load .env (if present) and build Settings from the environment."""
    load_dotenv(env_file or ROOT / ".env")
    catalog = os.getenv("QUEST_CATALOG_PATH", "")
    return Settings(
        assistant_url=os.getenv("QUEST_ASSISTANT_URL", ""),
        assistant_api_key=os.getenv("QUEST_ASSISTANT_API_KEY", ""),
        assistant_timeout=_float_env("QUEST_ASSISTANT_TIMEOUT", 120.0),
        request_timeout=_float_env("QUEST_REQUEST_TIMEOUT", 30.0),
        catalog_path=Path(catalog) if catalog else DEFAULT_CATALOG,
        forward_outcomes=_bool_env("QUEST_FORWARD_OUTCOMES", True),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_int_env("PORT", 13013),
    )
