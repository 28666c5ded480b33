"""Engine, transactional session scope and table bootstrap for core_entities / core_dynamic_data."""

import logging
import os
from contextlib import contextmanager
from typing import Generator

import sqlalchemy.exc
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from apps.universal_api.config import config
from apps.universal_api.models import Base, DynamicData, Entity  # noqa: F401

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", config.DATABASE_URL)

engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """One transaction per block: commit on success, rollback and re-raise on any error.
    Only services/repo.py calls this; every statement it runs is tenant-scoped."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _schema_strategy() -> str:
    return (os.environ.get("TEST_SCHEMA_STRATEGY") or "alembic").strip().lower()


def ensure_tables(bind=None) -> None:
    """create_all (checkfirst) for the ensure_tables test strategy only.

    Postgres outside tests and tests on the default 'alembic' strategy get their schema from
    `alembic upgrade head`, so this is a no-op there.
    """
    in_test = os.environ.get("ENV") == "test" or os.environ.get("PYTEST_RUNNING") == "1"
    if in_test and _schema_strategy() != "ensure_tables":
        return
    url = os.environ.get("DATABASE_URL", "").strip().lower()
    if url.startswith("postgresql") and not in_test:
        return
    _create_all_safe(bind if bind is not None else engine)


def _is_duplicate_object(e: sqlalchemy.exc.ProgrammingError) -> bool:
    name = type(e.orig).__name__ if e.orig is not None else ""
    return name in ("DuplicateTable", "DuplicateObject") or "already exists" in str(e).lower()


def _create_all_safe(bind) -> None:
    """create_all(checkfirst=True); Postgres 'already exists' errors are tolerated.
    An Engine gets an AUTOCOMMIT connection so tables created before a duplicate index persist."""
    conn = bind.connect().execution_options(isolation_level="AUTOCOMMIT") if isinstance(bind, Engine) else bind
    try:
        Base.metadata.create_all(bind=conn, checkfirst=True)
        logger.info("ensure_tables created schema tables=%s", sorted(Base.metadata.tables))
    except sqlalchemy.exc.ProgrammingError as e:
        if not _is_duplicate_object(e):
            raise
    finally:
        if isinstance(bind, Engine):
            conn.close()
