"""
Transcript store - local SQLite backend.

Keeps the rendered chat transcript so a conversation survives restarts.
Rows live in the ``chat_messages`` table, one conversation key per chat
(``campushelp.chat.v1`` by default).
"""

from loguru import logger
import time
from typing import Callable, List, Optional

from sqlalchemy import text

from memory.schemas import ChatMessage


class SQLTranscriptStore:
    """
    Transcript store backed by SQLAlchemy (SQLite by default).

    ``load`` never raises: an unreadable or empty transcript yields the
    welcome message so the chat can always start.
    """

    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        welcome: Optional[str] = None,
    ):
        if not session_factory:
            from infrastructure.db import get_session_factory
            session_factory = get_session_factory()
        self.session_factory = session_factory
        if welcome is None:
            from agents.prompts import WELCOME_MESSAGE
            welcome = WELCOME_MESSAGE
        self.welcome = welcome

    def initial(self) -> List[ChatMessage]:
        """Fresh transcript containing only the welcome message."""
        return [ChatMessage(role="assistant", text=self.welcome)]

    def load(self, key: str) -> List[ChatMessage]:
        """Load the stored transcript for ``key`` in display order."""
        session = self.session_factory()
        try:
            rows = session.execute(
                text("""
                    SELECT role, content, created_at
                    FROM chat_messages
                    WHERE conversation_key = :key
                    ORDER BY position ASC
                """),
                {"key": key},
            ).fetchall()
        except Exception as e:
            logger.error("Failed to load transcript '{}': {}", key, e)
            return self.initial()
        finally:
            session.close()

        if not rows:
            return self.initial()
        return [ChatMessage(role=row.role, text=row.content, ts=row.created_at) for row in rows]

    def save(self, key: str, messages: List[ChatMessage]) -> None:
        """Replace the stored transcript for ``key``."""
        session = self.session_factory()
        try:
            session.execute(
                text("DELETE FROM chat_messages WHERE conversation_key = :key"),
                {"key": key},
            )
            for position, message in enumerate(messages):
                session.execute(
                    text("""
                        INSERT INTO chat_messages (conversation_key, position, role, content, created_at)
                        VALUES (:key, :position, :role, :content, :created_at)
                    """),
                    {
                        "key": key,
                        "position": position,
                        "role": message.role,
                        "content": message.text,
                        "created_at": message.ts or time.time(),
                    },
                )
            session.commit()
            logger.debug("Saved {} transcript messages for {}", len(messages), key)
        except Exception as e:
            session.rollback()
            logger.error("Failed to save transcript '{}': {}", key, e)
            raise
        finally:
            session.close()

    def clear(self, key: str) -> None:
        """Delete all messages for ``key``."""
        session = self.session_factory()
        try:
            session.execute(
                text("DELETE FROM chat_messages WHERE conversation_key = :key"),
                {"key": key},
            )
            session.commit()
            logger.info("Cleared transcript: {}", key)
        except Exception as e:
            session.rollback()
            logger.error("Failed to clear transcript '{}': {}", key, e)
            raise
        finally:
            session.close()
