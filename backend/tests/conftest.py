import os

# Ensure JWT_SECRET is set before any service module is imported
os.environ.setdefault("JWT_SECRET", "test_secret")

from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest

from backend.gateway.server import create_app
from backend.tests.helpers import auth_header


class FakeDatabase:
    """
    Stand-in for `Database` that hands out one mocked connection and mimics
    commit-on-success / rollback-on-error.
    """

    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def transaction(self):
        try:
            yield self.conn
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise


@pytest.fixture
def ledger():
    """Mocked ledger injected into the app; tests set return values per call."""
    return MagicMock()


@pytest.fixture
def app(ledger):
    app = create_app({"TESTING": True, "LOG_LEVEL": "WARNING"}, ledger=ledger)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor.
    """
    mock_conn = mocker.Mock()
    mock_cursor = mocker.MagicMock()

    # Setup the context manager for cursor
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None

    # Connect cursor to connection
    mock_conn.cursor.return_value = mock_cursor

    return FakeDatabase(mock_conn), mock_conn, mock_cursor


@pytest.fixture
def user_headers():
    return auth_header(2, "user")


@pytest.fixture
def admin_headers():
    return auth_header(1, "admin")
