from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.schema import MetaData

from mdb.infra.settings import settings

# Deterministic constraint/index names
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Portable column types: BIGSERIAL/JSONB on Postgres, INTEGER/JSON elsewhere
BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


_engine: Engine | None = None

SessionLocal = sessionmaker(autoflush=False, future=True)


def _connect_args(url: str) -> dict[str, object]:
    if "sqlite" in url:
        return {"check_same_thread": False}
    if "postgresql" in url:
        return {"connect_timeout": settings.connect_timeout}
    return {}


def get_engine(db_url: str | None = None, for_test: bool = False) -> Engine:
    """Get or create a database engine.

    If ``for_test`` is True and ``settings.test_database_url`` is set, that URL is used.
    Otherwise falls back to the provided ``db_url`` or the default ``settings.database_url``.
    The default engine is created on first use and reused afterwards.
    """
    global _engine

    if for_test and settings.test_database_url:
        chosen_url = settings.test_database_url
    else:
        chosen_url = db_url or settings.database_url

    if not db_url and not for_test:
        if _engine is None:
            pool_args: dict[str, object] = {}
            if "postgresql" in chosen_url:
                pool_args = {
                    "pool_size": settings.pool_size,
                    "max_overflow": settings.max_overflow,
                    "pool_timeout": settings.pool_timeout,
                }
            _engine = create_engine(
                chosen_url,
                echo=settings.echo_sql,
                pool_pre_ping=True,
                future=True,
                connect_args=_connect_args(chosen_url),
                **pool_args,
            )
        return _engine

    return create_engine(
        chosen_url,
        echo=False,
        pool_pre_ping=True,
        future=True,
        connect_args=_connect_args(chosen_url),
    )


def get_sessionmaker(for_test: bool = False) -> sessionmaker:
    """Get a session factory bound to the application (or test) engine."""
    if not for_test:
        if SessionLocal.kw.get("bind") is None:
            SessionLocal.configure(bind=get_engine())
        return SessionLocal
    return sessionmaker(bind=get_engine(for_test=True), autoflush=False, future=True)


def create_schema(engine: Engine | None = None) -> None:
    """Create all MDB tables (development databases and tests)."""
    from mdb.domain import entities  # noqa: F401 - registers mappers

    Base.metadata.create_all(engine or get_engine())
