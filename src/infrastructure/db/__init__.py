"""
Database client for the CampusHelp transcript.

Single local store:
     SQLite (default) → chat transcript (chat_messages), one conversation key per chat
"""

from .sql_client import (
    chat_messages_table,
    get_sql_engine,
    get_session_factory,
    test_connection,
)

__all__ = [
    "chat_messages_table",
    "get_sql_engine",
    "get_session_factory",
    "test_connection",
]
