"""Shared test configuration: environment, database engine and session fixtures."""

import os

from cryptography.fernet import Fernet

os.environ["ENV"] = "test"
os.environ["META_APP_SECRET"] = "test-app-secret"
os.environ["VOICEFLOW_API_KEY"] = "vf-default-key"
os.environ.setdefault("FERNET_KEY", Fernet.generate_key().decode())

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import relay.models  # noqa: E402,F401
from relay.db import Base, db_manager  # noqa: E402

pytest_plugins = ["tests.fixtures.relay_fixtures"]


@pytest.fixture(scope="function")
def engine():
    """
    Fresh schema per test. Uses TEST_DATABASE_URL when set (Postgres), otherwise
    a single shared in-memory SQLite connection.
    """
    url = os.getenv("TEST_DATABASE_URL")
    if url:
        test_engine = create_engine(url)
    else:
        test_engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Base.metadata.create_all(test_engine)
    db_manager.init_with_engine(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    db_manager.dispose()


@pytest.fixture(scope="function")
def db(engine):
    session = db_manager.session()
    try:
        yield session
    finally:
        session.close()

