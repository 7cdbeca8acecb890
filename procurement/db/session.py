from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from procurement.core.config import get_settings

settings = get_settings()

DATABASE_URL = settings.database_url  # fail fast if missing

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    future=True,
)

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


def get_session_factory() -> sessionmaker:
    """
    Session factory for long-lived handlers (live ranking stream) that open
    a fresh session per pass instead of holding one for the whole connection.
    """
    return SessionLocal
