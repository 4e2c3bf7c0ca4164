"""Environment variable configuration for search, extraction and synthesis.

Values are loaded in priority order:
  1. Shell environment variables (highest priority)
  2. .env file in current directory
  3. ~/.research/.env (persistent config, set via `research env set`)

Run `research env` to see which keys are configured.
Run `research env set KEY value` to save a key persistently.

Required keys per provider / backend:
    SEARCH_PROVIDER=google  ->  SERPER_API_KEY
    SEARCH_PROVIDER=brave   ->  BRAVE_API_KEY
    SEARCH_PROVIDER=tavily  ->  TAVILY_API_KEY
    research browse --backend jina    ->  JINA_API_KEY
    research browse --backend serper  ->  SERPER_API_KEY
    SYNTHESIS_MODE=direct   ->  OPENAI_API_KEY
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Persistent config location
RESEARCH_DIR = Path.home() / ".research"
PERSISTENT_ENV = RESEARCH_DIR / ".env"

# Load in reverse priority order (later loads don't overwrite existing)
if PERSISTENT_ENV.exists():
    load_dotenv(PERSISTENT_ENV)
load_dotenv()

PROVIDERS = ("google", "brave", "tavily")
SYNTHESIS_MODES = ("agent", "direct", "basic")
DEFAULT_PROVIDER = "google"
DEFAULT_SYNTHESIS_MODE = "agent"
DEFAULT_SYNTHESIS_MODEL = "gpt-4.1-mini"


# --- Persistent config ---

def save_key(name: str, value: str) -> Path:
    """Save a value to ~/.research/.env for persistent use."""
    RESEARCH_DIR.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    replaced = False
    if PERSISTENT_ENV.exists():
        for line in PERSISTENT_ENV.read_text().splitlines():
            if line.startswith(f"{name}="):
                lines.append(f"{name}={value}")
                replaced = True
            else:
                lines.append(line)

    if not replaced:
        lines.append(f"{name}={value}")

    PERSISTENT_ENV.write_text("\n".join(lines) + "\n")

    # Also set in current process
    os.environ[name] = value

    return PERSISTENT_ENV


# --- API key accessors ---

def _require(name: str) -> str:
    key = os.getenv(name, "")
    if not key:
        raise ValueError(
            f"{name} is not set. "
            f"Run `research env set {name} <your-key>` to configure it."
        )
    return key


def get_serper_key() -> str:
    return _require("SERPER_API_KEY")


def get_brave_key() -> str:
    return _require("BRAVE_API_KEY")


def get_tavily_key() -> str:
    return _require("TAVILY_API_KEY")


def get_jina_key() -> str:
    return _require("JINA_API_KEY")


def get_openai_key() -> str | None:
    """OpenAI key is only needed for direct synthesis; None if not set."""
    return os.getenv("OPENAI_API_KEY") or None


# --- Behaviour settings ---

def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def get_api_timeout() -> int:
    return _int_env("API_TIMEOUT", 10)


def get_cache_ttl() -> int:
    """Search cache lifetime in seconds; 0 disables caching."""
    return max(0, _int_env("SEARCH_CACHE_TTL", 300))


def get_search_provider() -> str:
    name = os.getenv("SEARCH_PROVIDER", DEFAULT_PROVIDER).strip().lower()
    if name not in PROVIDERS:
        logger.warning("Unknown SEARCH_PROVIDER %r, falling back to %s", name, DEFAULT_PROVIDER)
        return DEFAULT_PROVIDER
    return name


def get_synthesis_mode() -> str:
    mode = os.getenv("SYNTHESIS_MODE", DEFAULT_SYNTHESIS_MODE).strip().lower()
    if mode not in SYNTHESIS_MODES:
        logger.warning("Unknown SYNTHESIS_MODE %r, falling back to %s", mode, DEFAULT_SYNTHESIS_MODE)
        return DEFAULT_SYNTHESIS_MODE
    return mode


def get_synthesis_model() -> str:
    return os.getenv("SYNTHESIS_MODEL") or DEFAULT_SYNTHESIS_MODEL


# --- Status check ---

ENV_VARS = {
    "SERPER_API_KEY": {
        "required_by": ["SEARCH_PROVIDER=google", "research browse --backend serper"],
        "description": "Google search and scraping via Serper.dev",
    },
    "BRAVE_API_KEY": {
        "required_by": ["SEARCH_PROVIDER=brave"],
        "description": "Brave Search API",
    },
    "TAVILY_API_KEY": {
        "required_by": ["SEARCH_PROVIDER=tavily"],
        "description": "Tavily search API for research agents",
    },
    "JINA_API_KEY": {
        "required_by": ["research browse --backend jina", "research topic"],
        "description": "Jina Reader for webpage content extraction",
    },
    "OPENAI_API_KEY": {
        "required_by": ["SYNTHESIS_MODE=direct"],
        "description": "OpenAI chat model for inline report synthesis",
    },
}

SETTINGS = {"SEARCH_PROVIDER", "SYNTHESIS_MODE", "SYNTHESIS_MODEL", "API_TIMEOUT", "SEARCH_CACHE_TTL"}

VALID_KEYS = set(ENV_VARS) | SETTINGS


def check_env() -> list[tuple[str, bool, dict]]:
    """Return list of (var_name, is_set, info) for all known API keys."""
    result = []
    for var, info in ENV_VARS.items():
        is_set = bool(os.getenv(var))
        result.append((var, is_set, info))
    return result
