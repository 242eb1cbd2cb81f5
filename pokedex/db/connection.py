from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import Engine, create_engine as sa_create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pokedex.db.models import Base

logger = logging.getLogger(__name__)


def _validate_sqlite_url(database_url: str) -> str:
    """Normalize and validate the SQLite URL used by the offline cache.

    Only SQLite is supported: the cache lives on the device next to the client,
    so a server database would defeat its purpose.
    """

    normalized_url = database_url.strip()
    if not normalized_url:
        raise RuntimeError("Cache database URL is empty.")
    if not normalized_url.startswith("sqlite"):
        raise RuntimeError(
            "The cache database must use SQLite. "
            "Expected a URL beginning with 'sqlite://'."
        )
    return normalized_url


def create_engine(database_url: str) -> Engine:
    """Create a synchronous SQLAlchemy engine for the cache database.

    In-memory databases share a single connection so every session sees the same
    tables. File databases get their parent directory created on demand.
    """

    url = make_url(_validate_sqlite_url(database_url))
    database = url.database

    if not database or database == ":memory:":
        engine = sa_create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        engine = sa_create_engine(url, connect_args={"check_same_thread": False})

    logger.debug("Cache engine created for %s", url.render_as_string(hide_password=True))
    return engine


def ensure_schema(engine: Engine) -> None:
    """Create the cache tables when they are missing."""

    Base.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error."""

    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
