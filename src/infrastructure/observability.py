"""
Observability layer - LangFuse v3 integration for tracing, cost, and latency.

Provides:
- ``get_langfuse()``          - singleton Langfuse client
- ``fetch_prompt()``          - pull prompts from LangFuse Prompt Management
- ``observe``                 - re-exported decorator for auto-tracing
- ``update_current_trace``    - tag the helpdesk turn with routing metadata
- ``update_current_observation`` - attach I/O + metadata to the current span
- ``flush()``                 - ensure events are sent before process exit

Configuration:
    .env must contain:
        LANGFUSE_SECRET_KEY
        LANGFUSE_PUBLIC_KEY
        LANGFUSE_BASE_URL   (default: https://us.cloud.langfuse.com)

    config/param.yaml:
        observability:
          enabled: true

When ``enabled`` is false every helper is a no-op.  When the keys are
missing there is no client, so the update helpers and ``flush()`` do
nothing and the chat works unchanged.
"""

from loguru import logger
import os
from typing import Optional

from langfuse import Langfuse, get_client, observe as _lf_observe

# ---------------------------------------------------------------------------
# Config flag
# ---------------------------------------------------------------------------

_ENABLED: Optional[bool] = None


def _is_enabled() -> bool:
    """Check if observability is enabled (from param.yaml)."""
    global _ENABLED
    if _ENABLED is not None:
        return _ENABLED
    from infrastructure.config import _get_nested, _PARAMS

    _ENABLED = bool(_get_nested(_PARAMS, "observability", "enabled", default=True))
    return _ENABLED


# ---------------------------------------------------------------------------
# Singleton LangFuse client
# ---------------------------------------------------------------------------

_langfuse_client = None
_initialised = False


def get_langfuse():
    """
    Return a singleton Langfuse client.

    Returns None if observability is disabled or keys are missing.  Missing
    keys are not cached, so a later ``load_dotenv()`` still enables tracing.
    """
    global _langfuse_client, _initialised
    if _initialised:
        return _langfuse_client

    if not _is_enabled():
        _initialised = True
        logger.info("Observability disabled via config - LangFuse not initialised.")
        return None

    secret_key = os.getenv("LANGFUSE_SECRET_KEY")
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY")
    base_url = os.getenv("LANGFUSE_BASE_URL", "https://us.cloud.langfuse.com")

    if not secret_key or not public_key:
        logger.debug("LangFuse keys not set (LANGFUSE_SECRET_KEY / LANGFUSE_PUBLIC_KEY); tracing is off.")
        return None

    _initialised = True
    try:
        _langfuse_client = Langfuse(
            secret_key=secret_key,
            public_key=public_key,
            host=base_url,
        )
        logger.info("LangFuse client initialised (host={})", base_url)
    except Exception as exc:
        logger.error("Failed to initialise LangFuse: {}", exc)
        _langfuse_client = None
    return _langfuse_client


# ---------------------------------------------------------------------------
# Prompt Management - fetch from LangFuse with local fallback
# ---------------------------------------------------------------------------


def fetch_prompt(
    name: str,
    *,
    fallback: str,
    cache_ttl_seconds: int = 300,
) -> str:
    """
    Fetch a text prompt from **LangFuse Prompt Management**.

    Used once at start-up to resolve the CampusHelp persona, so prompts
    can be edited in the dashboard without a deploy.  Falls back to the
    local string when LangFuse is unavailable or the prompt is missing.
    """
    client = get_langfuse()
    if client is None:
        return fallback

    try:
        prompt_obj = client.get_prompt(
            name,
            type="text",
            cache_ttl_seconds=cache_ttl_seconds,
        )
        logger.debug("LangFuse prompt '{}' loaded (version={})", name, getattr(prompt_obj, "version", "?"))
        return prompt_obj.compile()
    except Exception as exc:
        logger.debug(
            "LangFuse prompt '{}' not found or fetch failed: {}. Using local fallback.",
            name,
            exc,
        )
        return fallback


# ---------------------------------------------------------------------------
# @observe decorator
# ---------------------------------------------------------------------------


def observe(
    *,
    name: Optional[str] = None,
    as_type: Optional[str] = None,
):
    """
    Decorator that wraps ``langfuse.observe``; a passthrough when
    observability is disabled.

    Args:
        name: Span name (defaults to the function name).
        as_type: One of ``"generation"`` | ``None`` (span).
    """
    def _noop_decorator(fn):
        return fn

    if not _is_enabled():
        return _noop_decorator

    kwargs = {}
    if name is not None:
        kwargs["name"] = name
    if as_type is not None:
        kwargs["as_type"] = as_type

    return _lf_observe(**kwargs)


# ---------------------------------------------------------------------------
# Trace & Span Update Helpers
# ---------------------------------------------------------------------------


def update_current_trace(
    *,
    session_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    tags: Optional[list] = None,
) -> None:
    """Update the current trace. Safe to call when tracing is disabled."""
    if get_langfuse() is None:
        return
    kwargs = {}
    if session_id is not None:
        kwargs["session_id"] = session_id
    if metadata is not None:
        kwargs["metadata"] = metadata
    if tags is not None:
        kwargs["tags"] = tags
    try:
        get_client().update_current_trace(**kwargs)
    except Exception as exc:
        logger.debug("update_current_trace failed (non-critical): {}", exc)


def update_current_observation(
    *,
    input: Optional[str] = None,
    output: Optional[str] = None,
    metadata: Optional[dict] = None,
    model: Optional[str] = None,
) -> None:
    """
    Update the current span (or generation, when ``model`` is given).

    Safe to call when tracing is disabled.
    """
    if get_langfuse() is None:
        return
    kwargs = {}
    if input is not None:
        kwargs["input"] = input
    if output is not None:
        kwargs["output"] = output
    if metadata is not None:
        kwargs["metadata"] = metadata
    if not kwargs and model is None:
        return
    try:
        client = get_client()
        if model is not None:
            client.update_current_generation(model=model, **kwargs)
        else:
            client.update_current_span(**kwargs)
    except Exception as exc:
        logger.debug("update_current_observation failed (non-critical): {}", exc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def flush() -> None:
    """Flush pending LangFuse events (call before program exit)."""
    client = get_langfuse()
    if client is None:
        return
    try:
        client.flush()
        logger.debug("LangFuse flushed.")
    except Exception as exc:
        logger.debug("LangFuse flush failed: {}", exc)
