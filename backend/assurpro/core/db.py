from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import get_settings

settings = get_settings()


def engine_options(url: str) -> Dict[str, Any]:
    """
    Engine keyword arguments for a database URL.

    Sessions are handed to the threadpool by the profile store, so SQLite
    connections must be shareable across threads.
    """
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


# Pydantic v2 AnyUrl needs to be converted to string for SQLAlchemy
_database_url = str(settings.DATABASE_URL)
engine = create_engine(_database_url, **engine_options(_database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
