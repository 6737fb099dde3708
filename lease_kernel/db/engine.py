"""
Module: lease_kernel.db.engine
Responsibility: Own the process-wide SQLAlchemy engine and session factory
    for the lease core and provide the commit-or-rollback session scope
    callers wrap service calls in.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from domain/ or outer layers, except that create_tables asks the
    modules layer to register its ORM models.

Invariants enforced:
    - Production runs on PostgreSQL through psycopg: QueuePool with
      pre-ping and READ COMMITTED isolation.
    - ``sqlite://`` URLs (tests, local tooling) share one connection through
      StaticPool so an in-memory database outlives individual sessions.
    - Services flush but never commit; ``session_scope`` is where a unit of
      work is committed or rolled back.

Failure modes:
    - RuntimeError when a session is requested before init_engine_from_url().
    - The original exception propagates out of session_scope after rollback.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from lease_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool) -> Engine:
    return create_engine(
        database_url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


def _postgres_engine(
    database_url: str,
    echo: bool,
    pool_size: int,
    max_overflow: int,
    pool_timeout: int,
    pool_recycle: int,
) -> Engine:
    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory. A second call replaces the first.

    The keyword arguments mirror ``DatabaseConfig``, so a loaded
    configuration can be passed straight through:

        db = config.database
        init_engine_from_url(db.url, echo=db.echo, pool_size=db.pool_size,
                             max_overflow=db.max_overflow,
                             pool_timeout=db.pool_timeout)

    Pool settings are ignored for SQLite.
    """
    global _engine, _SessionFactory

    reset_engine()
    dialect = make_url(database_url).get_backend_name()
    if dialect == "sqlite":
        _engine = _sqlite_engine(database_url, echo)
    else:
        _engine = _postgres_engine(
            database_url, echo, pool_size, max_overflow, pool_timeout, pool_recycle,
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "pool_size": 1 if dialect == "sqlite" else pool_size},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session bound to the current engine."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

    Usage:
        with session_scope() as session:
            ReceiptService(session, clock=clock).allocate(request, actor_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the tables of every registered lease core ORM model."""
    from lease_kernel.db.base import Base
    from lease_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from lease_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
