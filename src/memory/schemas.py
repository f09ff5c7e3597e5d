"""
Transcript schemas and interfaces.

Dataclasses for the rendered chat transcript and a Protocol for the
store that persists it between runs.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Protocol, runtime_checkable
import time

Role = Literal["user", "assistant", "error"]

# Roles replayed to the model as conversation history; ``error`` rows
# are shown to the student but never sent back.
HISTORY_ROLES = ("user", "assistant")


@dataclass
class ChatMessage:
    """
    A single transcript entry (student, assistant, or error notice).

    Stored in the local transcript database (``chat_messages`` table).
    """
    role: Role
    text: str
    ts: float = field(default_factory=time.time)  # epoch seconds

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "role": self.role,
            "text": self.text,
            "ts": self.ts,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ChatMessage":
        """Create from dictionary."""
        return cls(
            role=data["role"],
            text=data.get("text", ""),
            ts=data.get("ts", 0.0),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol interfaces
# ═══════════════════════════════════════════════════════════════════════════════


@runtime_checkable
class TranscriptStore(Protocol):
    """Persists the transcript of one conversation key."""

    def initial(self) -> List[ChatMessage]:
        """Transcript a new or reset conversation starts from."""
        ...

    def load(self, key: str) -> List[ChatMessage]:
        ...

    def save(self, key: str, messages: List[ChatMessage]) -> None:
        ...

    def clear(self, key: str) -> None:
        ...
