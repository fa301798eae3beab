"""
Database Session Management Module
==================================

Responsible for:
- Creating the database engine with pool settings per backend
- Managing session lifecycle
- Providing the ``get_db`` dependency for FastAPI routes
- Savepoint helper for best-effort side writes
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings
from app.core.logging import get_logger

# Initialize logger
logger = get_logger(__name__)


# ==========================
# Database Engine
# ==========================

def _engine_options(url: str) -> Dict[str, Any]:
    """Pool and connect arguments for the configured backend."""
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "poolclass": QueuePool,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
        "connect_args": {
            "connect_timeout": 10,
            "application_name": "fieldops-backend",
        },
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)


# ==========================
# Pool Event Listeners
# ==========================

def enable_sqlite_savepoints(target_engine) -> None:
    """
    Let pysqlite run SAVEPOINTs.

    The driver otherwise manages BEGIN itself and nested transactions
    misbehave; SQLAlchemy emits BEGIN explicitly instead.
    """

    @event.listens_for(target_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


if settings.is_sqlite:
    enable_sqlite_savepoints(engine)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection, connection_record):
    """Log new database connections."""
    logger.debug("New database connection established", extra={"event": "db_connect"})


# ==========================
# Session Factory
# ==========================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# ==========================
# Dependency for FastAPI
# ==========================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Ensures:
    - Session is opened per request
    - Session is properly closed after request completes
    - Transactions are rolled back on error

    Usage:
        @router.get("/jobs")
        def list_jobs(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", extra={"error": str(e)})
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def savepoint(db: Session) -> Iterator[Session]:
    """
    Run a block inside a nested transaction.

    A failure rolls back only the nested block so the caller's pending
    work stays intact.
    """
    nested = db.begin_nested()
    try:
        yield db
        nested.commit()
    except Exception:
        if nested.is_active:
            nested.rollback()
        raise


# ==========================
# Database Health Check
# ==========================

def check_database_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        return False
