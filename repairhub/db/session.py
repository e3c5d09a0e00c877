from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from repairhub.core.config import Settings, get_settings


def _connect_args(url: str, settings: Settings) -> dict:
    # every store call must finish or fail within a bounded time
    if url.startswith("sqlite"):
        return {
            "timeout": settings.db_connect_timeout_seconds,
            "check_same_thread": False,
        }
    if url.startswith("postgresql"):
        return {
            "connect_timeout": settings.db_connect_timeout_seconds,
            "options": f"-c statement_timeout={settings.db_statement_timeout_ms}",
        }
    return {}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, settings: Settings) -> Engine:
    engine = create_engine(
        url,
        pool_pre_ping=True,
        future=True,
        connect_args=_connect_args(url, settings),
    )
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


settings = get_settings()

DATABASE_URL = settings.database_url  # fail fast if missing

engine = build_engine(DATABASE_URL, settings)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
