"""Shared fixtures. Settings are read at import time, so the env is set first."""

import os
import sys
import tempfile

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CAPTURE_DIR", os.path.join(tempfile.gettempdir(), "fleetdesk-test-captures"))
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "fleetdesk-test-logs"))
os.environ.setdefault("RECORD_STORE_BACKEND", "sql")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture
def db_engine():
    from fleetdesk.database import create_tables
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(db_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.close()
