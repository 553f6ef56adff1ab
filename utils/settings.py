"""
Gemini API key lookup and persistence.

The key is read from the environment (a .env file in the working directory
is loaded first), then from the local settings file written by the UI.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from config import API_KEY_ENV_VAR, API_KEY_SETTING, SETTINGS_PATH

logger = logging.getLogger(__name__)

load_dotenv()


def _read_settings(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def get_api_key(settings_path: Path = SETTINGS_PATH) -> Optional[str]:
    """Return the configured Gemini API key, or None."""
    key = os.environ.get(API_KEY_ENV_VAR, "").strip()
    if key:
        return key

    key = str(_read_settings(settings_path).get(API_KEY_SETTING) or "").strip()
    return key or None


def has_api_key(settings_path: Path = SETTINGS_PATH) -> bool:
    return get_api_key(settings_path) is not None


def save_api_key(api_key: str, settings_path: Path = SETTINGS_PATH) -> Path:
    """Persist the API key to the local settings file."""
    api_key = (api_key or "").strip()
    if not api_key:
        raise ValueError("API key must not be empty")

    settings = _read_settings(settings_path)
    settings[API_KEY_SETTING] = api_key

    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    logger.info("Saved API key to %s", settings_path)
    return settings_path
