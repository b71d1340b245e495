"""Pytest configuration and shared fixtures.

Every test gets its own in-memory SQLite database. SQLite's driver is switched
to manual transaction control so that SAVEPOINTs (used by the notification
service) behave the way they do on a server database.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docflow.api.deps import get_db
from docflow.api.main import app
from docflow.db.session import init_db
from tests.factories import create_account


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    """TestClient whose requests share the test's database session."""
    app.dependency_overrides[get_db] = lambda: db_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def account_factory(db_session):
    """Create accounts: ``account_factory(role="HOD")``."""

    def _create(**kwargs):
        return create_account(db_session, **kwargs)

    return _create


@pytest.fixture
def chain(account_factory):
    """One active account for every role in the approval chain."""
    return {
        role: account_factory(role=role, name=f"{role} One")
        for role in ("Student", "Lecturer", "HOD", "Dean", "VC", "Staff", "Admin")
    }
