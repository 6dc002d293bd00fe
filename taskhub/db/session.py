from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from taskhub.db import filters as _filters  # noqa: F401  (register soft-delete filter)
from taskhub.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Main DB dependency.

    Soft-deleted rows are hidden from every ORM select by the
    ``do_orm_execute`` listener in ``taskhub.db.filters``; handlers opt in
    with ``execution_options(include_deleted=True)`` (or the store's
    ``include_deleted`` flag). Handlers commit explicitly; anything not
    committed is rolled back when the session closes.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
