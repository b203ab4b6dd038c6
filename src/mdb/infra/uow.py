"""
This is the canonical Unit of Work boundary for MDB. All transactional changes must go through this.

Do not open ad hoc sessions elsewhere.

One pipeline event is handled inside exactly one session: either everything the
handler did is committed, or nothing is.
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator

from sqlalchemy.orm import Session, sessionmaker

from . import db as db_module


@contextlib.contextmanager
def session(factory: sessionmaker | None = None) -> Generator[Session, None, None]:
    """
    Database session context manager for operation handling and CLI commands.

    Provides Unit of Work semantics:
    - Opens a DB session
    - Yields it for use
    - On success: commits the transaction
    - On any exception, including non-MDB errors: rolls back and re-raises
    - Always closes the session

    Usage:
        with session() as db:
            db.add(some_object)
            # transaction will be committed automatically on success
    """
    db = (factory or db_module.get_sessionmaker())()
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()
