"""
Engine and session handling for the budget database
"""
import psycopg
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from budgetlock.config import Settings, get_settings


class Base(DeclarativeBase):
    pass


_engine = None
_SessionLocal = None


def build_engine(settings: Settings):
    """
    Engine for the configured database.

    Pool sizing and the connect timeout only apply to PostgreSQL; other URLs
    (SQLite for local runs) get SQLAlchemy's defaults.
    """
    kwargs = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if settings.is_postgres:
        kwargs["pool_size"] = settings.DB_POOL_SIZE
        kwargs["connect_args"] = {"connect_timeout": settings.DB_CONNECT_TIMEOUT}
    return create_engine(settings.get_sqlalchemy_url(), **kwargs)


def get_engine():
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings())
    return _engine


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _SessionLocal


def get_db() -> Session:
    """
    FastAPI dependency: one session per request, closed afterwards

    Use cases commit or roll back themselves; an uncommitted session is
    discarded on close.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def check_db_connection() -> None:
    """
    Readiness check: SELECT 1 over a raw psycopg connection

    Raises:
        psycopg.OperationalError: database unreachable
    """
    settings = get_settings()
    with psycopg.connect(settings.get_psycopg_dsn(), connect_timeout=settings.DB_CONNECT_TIMEOUT) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
            cur.fetchone()
