"""
Database connection and session management.

Handles engine creation, schema initialization, and the session factory.

The default URL is an in-memory SQLite database shared by every session of the
process (one connection via StaticPool), so tables are process-wide, start
empty, and disappear on exit. Pointing DATABASE_URL at a file keeps the same
repositories working against durable storage.

Sessions are created via `get_db()` or `db_session()` and are used on the
event loop thread only; handlers run to completion one at a time, so no
additional locking is needed around repository calls.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import AsyncGenerator, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool, StaticPool

from acto.core.config import get_database_url, settings
from acto.core.memory.models import Base


logger = logging.getLogger(__name__)


def _is_in_memory(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def _create_engine():
    url = get_database_url()
    if _is_in_memory(url):
        # One shared connection: every session sees the same in-memory tables.
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.database_echo,
        )
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        connect_args=connect_args,
        poolclass=NullPool,  # New connection per session; no sharing across threads
        echo=settings.database_echo,
    )


engine = _create_engine()

# Simple debug flag for DB session lifecycle logging
DB_DEBUG_LOG = (
    settings.database_echo
    or os.getenv("DB_DEBUG_LOG", "0").lower() in ("1", "true", "yes")
)

# Session factory: one Session instance per unit of work (request, socket event).
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

# Global lock to ensure only one thread initializes the database at a time.
_init_lock = threading.Lock()


def init_db(drop_existing: bool = False) -> None:
    """Initialize database schema (create tables). drop_existing wipes all tables first."""
    with _init_lock:
        try:
            if drop_existing:
                Base.metadata.drop_all(bind=engine)
            Base.metadata.create_all(bind=engine)
            logger.info("Database schema initialized")
        except Exception as e:
            logger.error("Failed to initialize database: %s", e, exc_info=True)
            raise


async def get_db() -> AsyncGenerator[Session, None]:
    """
    Dependency for FastAPI to get a database session.

    Declared async so FastAPI resolves it on the event loop rather than in the
    threadpool; the session then lives on the same thread as the route.

    Usage:
        @router.get("/endpoint")
        async def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    if DB_DEBUG_LOG:
        logger.debug("DB session created id=%s thread_id=%s", id(db), threading.get_ident())
    try:
        yield db
    except Exception:
        if db.is_active:
            db.rollback()
        raise
    finally:
        # Repositories handle their own commits, so we don't commit here.
        if DB_DEBUG_LOG:
            logger.debug("DB session closing id=%s", id(db))
        db.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of request scope
    (WebSocket events, startup seeding, scripts).
    """
    db = SessionLocal()
    if DB_DEBUG_LOG:
        logger.debug("DB session (context) created id=%s thread_id=%s", id(db), threading.get_ident())
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# Enable foreign key constraints for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints in SQLite; WAL only applies to file databases."""
    if engine.dialect.name != "sqlite":
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    if not _is_in_memory(str(engine.url)):
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()
