"""
SQL client - SQLAlchemy engine and session for the local transcript database.

Provides:
- Engine cache keyed by database URL (default: SQLite under data/)
- Session factory
- Table definition for the persisted chat transcript (chat_messages)
"""

from loguru import logger
from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    Float,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from pathlib import Path
from typing import Dict, Optional

from infrastructure.config import TRANSCRIPT_DB_URL

_engines: Dict[str, Engine] = {}

metadata = MetaData()

# ============================================================================
# TRANSCRIPT TABLE
# ============================================================================

# One row per rendered chat message; ``position`` keeps transcript order.
chat_messages_table = Table(
    "chat_messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("conversation_key", Text, nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("role", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", Float, nullable=False),
)


def _ensure_sqlite_dir(db_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def get_sql_engine(db_url: Optional[str] = None) -> Engine:
    """
    Get (or create) the SQLAlchemy engine for ``db_url``.

    Tables are created on first use so a fresh checkout works without
    a separate init step.
    """
    db_url = db_url or TRANSCRIPT_DB_URL
    engine = _engines.get(db_url)
    if engine is None:
        _ensure_sqlite_dir(db_url)
        connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
        engine = create_engine(
            db_url,
            pool_pre_ping=True,
            connect_args=connect_args,
            echo=False,
        )
        metadata.create_all(bind=engine)
        _engines[db_url] = engine
        logger.debug("Transcript SQL engine created: {}", db_url)
    return engine


def get_session_factory(db_url: Optional[str] = None) -> sessionmaker:
    """Session factory bound to the transcript engine."""
    return sessionmaker(bind=get_sql_engine(db_url), autocommit=False, autoflush=False)


def test_connection(db_url: Optional[str] = None) -> bool:
    """
    Test the transcript database connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_sql_engine(db_url)
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            ok = result.scalar() == 1
        logger.info("Transcript DB connection test: {}", "SUCCESS" if ok else "FAILED")
        return ok
    except Exception as e:
        logger.error("Transcript DB connection test: FAILED - {}", e)
        return False
