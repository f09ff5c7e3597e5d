"""
Infrastructure layer - pure plumbing (config, logging, LLM, SQL, tracing).

No business logic here. Just connections, clients, and configuration loading.
"""

from .llm import get_chat_llm
from .observability import observe, flush, get_langfuse

__all__ = [
    "get_chat_llm",
    "observe",
    "flush",
    "get_langfuse",
]
