"""
LLM provider wrapper.

  get_chat_llm()  → streaming chat model (Gemini 2.5 Flash via OpenRouter by default)
"""

from .llm_provider import get_chat_llm, model_name

__all__ = [
    "get_chat_llm",
    "model_name",
]
