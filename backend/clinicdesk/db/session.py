"""Engine and session factory for the local key-value store.

SQLite (the default) gets NullPool, so every request session and the
reconcile job open their own connection. Server databases get a small pool.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from clinicdesk.core.config import settings


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)

# The Record Store flushes and commits explicitly
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
