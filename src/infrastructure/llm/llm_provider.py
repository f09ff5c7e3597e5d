"""
Chat LLM provider.

CampusHelp talks to one hosted chat model through an OpenAI-compatible
endpoint.  The model is a black box: it receives the routed system
instruction, the transcript and the augmented user turn, and streams
text back.
"""

from typing import Optional, Any
from langchain_openai import ChatOpenAI

from infrastructure.config import (
    CHAT_MODEL,
    PROVIDER,
    GROQ_BASE_URL,
    OPENROUTER_BASE_URL,
    get_api_key,
)


def _build_llm(
    model: str,
    provider: str,
    temperature: float = 0,
    streaming: bool = True,
    max_tokens: Optional[int] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """Internal factory - builds a ChatOpenAI for any provider."""
    llm_kwargs: dict[str, Any] = dict(
        model=model,
        temperature=temperature,
        streaming=streaming,
        max_tokens=max_tokens,
        **kwargs,
    )

    if provider == "openrouter":
        llm_kwargs["openai_api_base"] = OPENROUTER_BASE_URL
        llm_kwargs["openai_api_key"] = get_api_key("openrouter")
    elif provider == "groq":
        llm_kwargs["openai_api_base"] = GROQ_BASE_URL
        llm_kwargs["openai_api_key"] = get_api_key("groq")
    elif provider == "openai":
        llm_kwargs["openai_api_key"] = get_api_key("openai")

    return ChatOpenAI(**llm_kwargs)


def get_chat_llm(
    model: Optional[str] = None,
    provider: Optional[str] = None,
    temperature: float = 0.2,
    max_tokens: Optional[int] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """LLM for user-facing helpdesk answers.

    Model: gemini-2.5-flash via OpenRouter unless param.yaml says otherwise.
    Streaming is on so the CLI can render tokens as they arrive.
    """
    return _build_llm(
        model or CHAT_MODEL,
        provider or PROVIDER,
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs,
    )


def model_name(llm: Any) -> str:
    """Best-effort model name for logs and LangFuse metadata."""
    if hasattr(llm, "model_name"):
        return llm.model_name
    if hasattr(llm, "model"):
        return llm.model
    return "unknown"
