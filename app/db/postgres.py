from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker
from contextlib import contextmanager
from app.core.config import get_settings
from app.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)


def _engine_options(url: str) -> dict:
    # sqlite is only used for local runs and the test-suite: one shared connection
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
            "echo": settings.debug,
        }
    # pool_size=5: maintain 5 connections ready
    # max_overflow=10: allow 10 extra connections under load
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "echo": settings.debug,  # Log SQL queries in debug mode
    }


engine = create_engine(settings.postgres_url, **_engine_options(settings.postgres_url))

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create every table declared in app.db.schema that does not exist yet."""
    from app.db.schema import metadata

    metadata.create_all(bind=engine)
    logger.info("Relational schema initialised")


def test_postgres_connection() -> bool:
    """
    Test if the relational database is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.warning(f"Database connection failed: {e}")
        return False


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    This is useful for complex queries and reports.
    """
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        # Convert rows to dicts
        columns = result.keys()
        return [dict(zip(columns, row)) for row in result.fetchall()]


def fetch_one(sql: str, params: dict = None):
    """Execute raw SQL and return the first row as a dict (or None)."""
    rows = execute_raw_sql(sql, params)
    return rows[0] if rows else None
