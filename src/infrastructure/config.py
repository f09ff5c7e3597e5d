"""
Application configuration - loads from YAML param files.

CONFIGURATION POLICY:
====================
Non-secret settings are loaded from config/param.yaml.
Secrets (API keys) and helpdesk contact endpoints live ONLY in .env and
are loaded via os.getenv().

The chat model is reached through an OpenAI-compatible endpoint:
- OpenRouter (default, unified multi-provider access)
- OpenAI (direct)
- Groq (direct)

``load_config()`` turns the module-level values into an explicit
``HelpdeskConfig`` object that is passed to ``build_agent()``, so the
router and orchestrator never read ambient globals.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml
from loguru import logger

# ========================================
# Project Paths
# ========================================

# Get project root (parent of src/infrastructure/)
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_CONFIG_DIR = _PROJECT_ROOT / "config"

# ========================================
# YAML Config Loading
# ========================================

def _load_yaml(filename: str) -> Dict[str, Any]:
    """Load a YAML config file."""
    filepath = _CONFIG_DIR / filename
    if not filepath.exists():
        return {}
    with open(filepath, "r") as f:
        return yaml.safe_load(f) or {}


def _get_nested(d: Dict, *keys, default=None):
    """Get nested dictionary value safely."""
    for key in keys:
        if isinstance(d, dict):
            d = d.get(key, default)
        else:
            return default
    return d if d is not None else default


# Load configs
_PARAMS = _load_yaml("param.yaml")

# ========================================
# Provider Configuration
# ========================================

PROVIDER = _get_nested(_PARAMS, "provider", "default", default="openrouter")
OPENROUTER_BASE_URL = _get_nested(_PARAMS, "provider", "openrouter_base_url",
                                   default="https://openrouter.ai/api/v1")
GROQ_BASE_URL = "https://api.groq.com/openai/v1"

CHAT_MODEL = _get_nested(_PARAMS, "provider", "chat_model",
                         default="google/gemini-2.5-flash")

# ========================================
# LLM Defaults
# ========================================

LLM_TEMPERATURE = _get_nested(_PARAMS, "llm", "temperature", default=0.2)
LLM_MAX_TOKENS = _get_nested(_PARAMS, "llm", "max_tokens", default=2000)

# ========================================
# Web Search Grounding (Tavily)
# ========================================

WEB_SEARCH_ENABLED = _get_nested(_PARAMS, "web_search", "enabled", default=True)
WEB_SEARCH_MAX_RESULTS = _get_nested(_PARAMS, "web_search", "max_results", default=5)
WEB_SEARCH_DEPTH = _get_nested(_PARAMS, "web_search", "search_depth", default="basic")

# ========================================
# Routing
# ========================================

# Optional YAML file with a custom category table (relative to project root)
CATEGORIES_FILE = _get_nested(_PARAMS, "routing", "categories_file", default=None)

# ========================================
# Attachments
# ========================================

UPLOAD_MAX_FILE_MB = _get_nested(_PARAMS, "uploads", "max_file_mb", default=20)

# ========================================
# Transcript Persistence (local SQLite)
# ========================================

DATA_DIR = _PROJECT_ROOT / _get_nested(_PARAMS, "paths", "data_dir", default="data")
TRANSCRIPT_DB_URL = os.getenv(
    "CAMPUSHELP_DB_URL",
    f"sqlite:///{DATA_DIR / 'campushelp.db'}",
)
TRANSCRIPT_KEY = _get_nested(_PARAMS, "transcript", "key", default="campushelp.chat.v1")

# ========================================
# Logging
# ========================================

LOG_LEVEL = _get_nested(_PARAMS, "logging", "level", default="INFO")
LOG_FILE = _get_nested(_PARAMS, "logging", "file", default=None)

# ========================================
# Helpdesk Contact (human handoff)
# ========================================

HELPDESK_EMAIL = os.getenv("HELPDESK_EMAIL", "")
WHATSAPP_NUMBER = os.getenv("WHATSAPP_NUMBER", "")
HELPDESK_WEBHOOK_URL = os.getenv("HELPDESK_WEBHOOK_URL", "")
WEBHOOK_TIMEOUT_SECONDS = _get_nested(_PARAMS, "handoff", "webhook_timeout", default=10.0)


# ========================================
# Explicit configuration object
# ========================================

@dataclass
class ContactConfig:
    """Human-handoff endpoints. Empty strings mean "not configured"."""

    email: str = ""
    whatsapp: str = ""
    webhook: str = ""
    webhook_timeout: float = 10.0


@dataclass
class HelpdeskConfig:
    """Everything ``build_agent()`` needs, resolved once at start-up."""

    provider: str = "openrouter"
    chat_model: str = "google/gemini-2.5-flash"
    temperature: float = 0.2
    max_tokens: Optional[int] = 2000
    web_search: bool = True
    web_search_max_results: int = 5
    web_search_depth: str = "basic"
    categories_file: Optional[Path] = None
    upload_max_bytes: int = 20 * 1024 * 1024
    transcript_db_url: str = "sqlite:///data/campushelp.db"
    transcript_key: str = "campushelp.chat.v1"
    contact: ContactConfig = field(default_factory=ContactConfig)


def load_config() -> HelpdeskConfig:
    """Build a ``HelpdeskConfig`` from param.yaml + environment."""
    categories_file = _PROJECT_ROOT / CATEGORIES_FILE if CATEGORIES_FILE else None
    return HelpdeskConfig(
        provider=PROVIDER,
        chat_model=CHAT_MODEL,
        temperature=float(LLM_TEMPERATURE),
        max_tokens=LLM_MAX_TOKENS,
        web_search=bool(WEB_SEARCH_ENABLED),
        web_search_max_results=int(WEB_SEARCH_MAX_RESULTS),
        web_search_depth=WEB_SEARCH_DEPTH,
        categories_file=categories_file,
        upload_max_bytes=int(UPLOAD_MAX_FILE_MB * 1024 * 1024),
        transcript_db_url=TRANSCRIPT_DB_URL,
        transcript_key=TRANSCRIPT_KEY,
        contact=ContactConfig(
            email=HELPDESK_EMAIL,
            whatsapp=WHATSAPP_NUMBER,
            webhook=HELPDESK_WEBHOOK_URL,
            webhook_timeout=float(WEBHOOK_TIMEOUT_SECONDS),
        ),
    )


# ========================================
# Helper Functions
# ========================================

def get_api_key(provider: Optional[str] = None) -> Optional[str]:
    """Get API key for the specified provider."""
    provider = provider or PROVIDER
    key_map = {
        "openrouter": "OPENROUTER_API_KEY",
        "openai": "OPENAI_API_KEY",
        "groq": "GROQ_API_KEY",
        "tavily": "TAVILY_API_KEY",
    }
    env_var = key_map.get(provider, f"{provider.upper()}_API_KEY")
    return os.getenv(env_var)


def validate(cfg: Optional[HelpdeskConfig] = None) -> None:
    """
    Validate configuration and create required directories.

    Raises:
        ValueError: If required secrets are missing
        OSError: If directories cannot be created
    """
    provider = cfg.provider if cfg else PROVIDER
    if not get_api_key(provider):
        key_name = "OPENROUTER_API_KEY" if provider == "openrouter" else f"{provider.upper()}_API_KEY"
        raise ValueError(
            f" Missing required secret: {key_name}\n"
            f"Please add it to your .env file."
        )

    try:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
    except (PermissionError, OSError) as e:
        raise OSError(f" Cannot create directory {DATA_DIR}: {e}")


def dump(cfg: Optional[HelpdeskConfig] = None) -> None:
    """Print all active non-secret configuration values for debugging."""
    cfg = cfg or load_config()
    logger.info("\n" + "=" * 60)
    logger.info("CONFIGURATION (NON-SECRETS ONLY)")
    logger.info("=" * 60)

    logger.info("\n Provider:")
    logger.info(f"   Provider: {cfg.provider}")
    logger.info(f"   Chat Model: {cfg.chat_model}")
    logger.info(f"   Temperature: {cfg.temperature}")
    logger.info(f"   Max Tokens: {cfg.max_tokens}")

    logger.info("\n Web Search:")
    logger.info(f"   Enabled: {cfg.web_search}")
    logger.info(f"   Max Results: {cfg.web_search_max_results}")
    logger.info(f"   Tavily Key: {'Set' if get_api_key('tavily') else 'Not set'}")

    logger.info("\n Routing:")
    logger.info(f"   Categories File: {cfg.categories_file or '(built-in table)'}")

    logger.info("\n Storage:")
    logger.info(f"   Transcript DB: {cfg.transcript_db_url}")
    logger.info(f"   Transcript Key: {cfg.transcript_key}")
    logger.info(f"   Upload Limit: {cfg.upload_max_bytes // (1024 * 1024)} MB")

    logger.info("\n Human Handoff:")
    logger.info(f"   Email: {'Set' if cfg.contact.email else 'Not set'}")
    logger.info(f"   WhatsApp: {'Set' if cfg.contact.whatsapp else 'Not set'}")
    logger.info(f"   Ticket Webhook: {'Set' if cfg.contact.webhook else 'Not set'}")

    logger.info("\n" + "=" * 60 + "\n")


def get_config() -> Dict[str, Any]:
    """Return full config dictionary."""
    return _PARAMS
