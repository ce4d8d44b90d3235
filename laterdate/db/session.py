from typing import Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _is_sqlite_memory(database_url: str) -> bool:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return False
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def create_session_factory(database_url: str, echo: bool = False) -> Tuple[Engine, sessionmaker]:
    """Build the engine and session factory once at process start.

    The caller owns the engine and must ``dispose()`` it on shutdown.
    """
    if _is_sqlite_memory(database_url):
        # Single shared connection so in-memory databases survive across sessions.
        # Only safe with one worker thread.
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    elif database_url.startswith("sqlite"):
        # File databases get one connection per thread; writers wait on the file lock
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=echo,
        )
    else:
        # PostgreSQL configuration with connection pooling
        engine = create_engine(
            database_url,
            pool_size=5,
            max_overflow=5,
            pool_recycle=300,      # Recycle connections every 5 minutes
            pool_pre_ping=True,    # Validate connections before use
            pool_timeout=30,
            echo=echo,
        )
    session_factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    return engine, session_factory
