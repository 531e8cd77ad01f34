"""Configuration for Roundtable debates."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# OpenRouter API key
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")

# Tavily API key for the optional background lookup
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY")

# Base data directory - configurable via environment
DATA_BASE_DIR = os.getenv("ROUNDTABLE_DATA_DIR", "data")

# Model used for panel synthesis, turns, summary and verdict
DEFAULT_DEBATE_MODEL = os.getenv("ROUNDTABLE_MODEL", "openai/gpt-4o-mini")

# Round defaults
DEFAULT_TOTAL_ROUNDS = 3
MIN_TOTAL_ROUNDS = 1
MAX_TOTAL_ROUNDS = 10

# Turns are a few sentences long and sampled hot so the panel stays varied
TURN_MAX_TOKENS = 160
TURN_TEMPERATURE = 1.1
SUMMARY_MAX_TOKENS = 800

# Hard wall-clock limit for one streamed session, in seconds
SESSION_MAX_DURATION = float(os.getenv("ROUNDTABLE_SESSION_MAX_DURATION", "300"))

# Panel synthesis cache
PANEL_CACHE_TTL_SECONDS = 60 * 60
PANEL_CACHE_MAX_ENTRIES = 200

# OpenRouter API endpoint
OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"

# Tavily API endpoint
TAVILY_API_URL = "https://api.tavily.com/search"

# User config file path
USER_CONFIG_FILE = os.path.join(DATA_BASE_DIR, "user_config.json")


def _split_list(value: str | None) -> list[str]:
    """Split a comma or newline separated env value, dropping blanks and duplicates."""
    if not value:
        return []
    items = [item.strip() for item in value.replace("\n", ",").split(",")]
    return list(dict.fromkeys(item for item in items if item))


# Voice ids assigned round-robin to synthesized participants
VOICE_IDS = _split_list(os.getenv("ROUNDTABLE_VOICE_IDS"))

# Fallback voice names when no voice ids are configured
DEFAULT_VOICES = [
    "marin", "cedar", "alloy", "ash", "ballad", "coral",
    "echo", "fable", "nova", "onyx", "sage", "shimmer", "verse",
]


def load_user_config() -> dict[str, Any]:
    """
    Load user configuration from file.

    Returns:
        Dict with user config or empty dict if not found
    """
    config_path = Path(USER_CONFIG_FILE)
    if config_path.exists():
        try:
            with open(config_path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable user config. Path: %s", config_path)
            return {}
    return {}


def save_user_config(config: dict[str, Any]) -> None:
    """
    Save user configuration to file.

    Args:
        config: Configuration dict to save
    """
    config_path = Path(USER_CONFIG_FILE)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def get_debate_model() -> str:
    """
    Get effective debate model (user config or default).

    Returns:
        Model identifier string
    """
    user_config = load_user_config()
    return user_config.get('debate_model', DEFAULT_DEBATE_MODEL)


def get_total_rounds() -> int:
    """
    Get effective round count (user config or default), clamped to the allowed range.

    Returns:
        Number of rounds per session
    """
    user_config = load_user_config()
    rounds = user_config.get('total_rounds', DEFAULT_TOTAL_ROUNDS)
    try:
        rounds = int(rounds)
    except (TypeError, ValueError):
        return DEFAULT_TOTAL_ROUNDS
    return max(MIN_TOTAL_ROUNDS, min(MAX_TOTAL_ROUNDS, rounds))


def update_debate_config(
    debate_model: str | None = None,
    total_rounds: int | None = None,
) -> dict[str, Any]:
    """
    Update debate configuration.

    Args:
        debate_model: New model identifier (None to keep current)
        total_rounds: New default round count (None to keep current)

    Returns:
        Updated config dict
    """
    config = load_user_config()

    if debate_model is not None:
        config['debate_model'] = debate_model
    if total_rounds is not None:
        config['total_rounds'] = total_rounds

    save_user_config(config)
    return config


def reload_config() -> dict[str, Any]:
    """
    Reload configuration from .env and user config files.

    Returns:
        Dict with reload status and current config
    """
    global OPENROUTER_API_KEY, TAVILY_API_KEY, VOICE_IDS

    load_dotenv(override=True)

    OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
    TAVILY_API_KEY = os.getenv("TAVILY_API_KEY")
    VOICE_IDS = _split_list(os.getenv("ROUNDTABLE_VOICE_IDS"))

    logger.info("Configuration reloaded")

    return {
        "status": "reloaded",
        "openrouter_configured": bool(OPENROUTER_API_KEY),
        "tavily_configured": bool(TAVILY_API_KEY),
        "debate_model": get_debate_model(),
        "total_rounds": get_total_rounds(),
    }
