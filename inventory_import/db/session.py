"""Engine and session factory configuration."""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_import.core.config import get_settings


def build_engine(database_url: str) -> Engine:
    """Create an engine; pooled keepalive settings apply to PostgreSQL only."""
    if not database_url.startswith("postgresql"):
        return create_engine(database_url, echo=False, future=True)
    # Long imports hold a connection for minutes; recycle and ping to survive idle drops
    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        },
    )


@lru_cache
def get_engine() -> Engine:
    return build_engine(get_settings().database_url)


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def SessionLocal() -> Session:
    return get_session_factory()()
