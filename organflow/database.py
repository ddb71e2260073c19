"""SQLAlchemy engine and session factory for the database snapshot store."""
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    pass


def get_engine(database_url: str, pool_options: Optional[Dict[str, Any]] = None):
    """
    Build a sync engine. `pool_options` (pool_size, max_overflow, pool_timeout,
    pool_recycle) apply to server databases only; SQLite ignores them.
    """
    kwargs = {"echo": False, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    elif pool_options:
        kwargs.update(pool_options)
    return create_engine(database_url, **kwargs)


def get_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine) -> None:
    """Create tables if they do not exist. Import organflow.models before calling so tables are registered."""
    from organflow import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
