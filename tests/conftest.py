"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. ``graph`` seeds the demo
tenant graph (see ``taskhub.db.init_db.seed_demo_data``) into that session.
"""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from taskhub.authz.matrix import PermissionMatrix
from taskhub.authz.principal import Principal
from taskhub.settings import Settings


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from taskhub.db import filters  # noqa: F401  (soft-delete filter)
    from taskhub.db.base import Base
    from taskhub.models import tenancy, work  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def graph(db_session):
    """Seeded demo graph: records by name (platform, acme, eng, manager, hvac, ...)."""
    from taskhub.db.init_db import seed_demo_data

    return seed_demo_data(db_session)


@pytest.fixture
def store(db_session):
    from taskhub.db.store import SqlEntityStore

    return SqlEntityStore(db_session)


@pytest.fixture(scope="session")
def matrix() -> PermissionMatrix:
    return PermissionMatrix.from_yaml(Settings().resolved_permission_matrix_path())


@pytest.fixture
def principal_of():
    """Build the Principal the supplier would produce for a stored user."""

    def build(user) -> Principal:
        return Principal.from_user(user, is_platform_org=user.organization.is_platform_org)

    return build


class StepClock:
    """Deterministic clock: each call advances by one second."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 9, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> StepClock:
    return StepClock()
