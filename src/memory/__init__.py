"""
Transcript memory - schemas and the local store.

  - ChatMessage:        one rendered transcript entry (user / assistant / error)
  - SQLTranscriptStore: persists a conversation between runs (SQLite)
"""

from .schemas import ChatMessage, HISTORY_ROLES, TranscriptStore
from .transcript_store import SQLTranscriptStore

__all__ = [
    "ChatMessage",
    "HISTORY_ROLES",
    "TranscriptStore",
    "SQLTranscriptStore",
]
