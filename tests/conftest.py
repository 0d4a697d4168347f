"""
pytest configuration and fixtures.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# main reads DATABASE_URL at import time
_DB_DIR = tempfile.mkdtemp(prefix="clickcounter-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"

from fastapi.testclient import TestClient
from sqlalchemy import delete
from sqlalchemy.orm import Session

import main
from models import CounterRow


@pytest.fixture(autouse=True)
def empty_table() -> Generator[None, None, None]:
    """Start every test without a counter row."""
    with main.SessionLocal() as db:
        db.execute(delete(CounterRow))
        db.commit()
    yield


@pytest.fixture
def db() -> Generator[Session, None, None]:
    session = main.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Fresh client per test, so no cookies leak between tests."""
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def row_values():
    """Reader for the current (total_visitors, total_clicks), None without a row."""
    def read():
        with main.SessionLocal() as db:
            row = db.get(CounterRow, 1)
            if row is None:
                return None
            return row.total_visitors, row.total_clicks
    return read
