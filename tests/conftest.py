"""
Pytest configuration and fixtures for adoption aggregator tests

This module provides shared fixtures for unit, integration, and E2E tests:
fake collaborators for unit tests, a PostgreSQL testcontainer, and a
local HTTP stub of the pet search service.
"""
import json
import os
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Generator
from urllib.parse import parse_qs, urlparse

import psycopg
import pytest
import requests
from testcontainers.postgres import PostgresContainer

from src.core.models import Transaction


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full aggregation"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# FAKE COLLABORATORS
# =======================

class FakeResponse:
    """Minimal stand-in for requests.Response"""

    def __init__(self, status_code: int = 200, payload: Any = None, body: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self._body = body
        self.closed = False

    def json(self):
        if self._body is not None:
            return json.loads(self._body)
        return self._payload

    def close(self):
        self.closed = True


class FakeSession:
    """
    Stand-in for requests.Session routing GETs by the petid query parameter.

    A route is a FakeResponse, an exception instance (raised), or a
    callable taking the pet id and returning either of those.
    """

    def __init__(self, routes: dict[str, Any] | None = None):
        self.routes = routes or {}
        self.calls: list[dict[str, Any]] = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url, timeout=None, headers=None, **kwargs):
        pet_id = parse_qs(urlparse(url).query).get("petid", [""])[0]
        with self._lock:
            self.calls.append({"url": url, "pet_id": pet_id, "timeout": timeout})

        route = self.routes.get(pet_id, FakeResponse(404, body="not found"))
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(pet_id)
        if isinstance(route, Exception):
            raise route
        return route

    def close(self):
        self.closed = True


class FakeTransactionSource:
    """Stand-in for TransactionSource returning canned transactions"""

    def __init__(self, transactions: list[Transaction] | None = None, error: Exception | None = None):
        self.transactions = transactions or []
        self.error = error
        self.calls = 0

    def fetch_recent_transactions(self, ctx=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.transactions)


class FakeCursor:
    def __init__(self, rows: list[dict] | None = None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.executed: list[tuple[Any, Any]] = []

    def execute(self, query, params=None):
        self.executed.append((query, params))
        if self.error is not None:
            raise self.error

    def fetchall(self):
        return self.rows


class FakePool:
    """Stand-in for DatabaseConnectionPool exposing get_cursor()"""

    def __init__(self, cursor: FakeCursor):
        self.cursor = cursor

    @contextmanager
    def get_cursor(self):
        yield self.cursor


def make_transaction(transaction_id: str, pet_id: str, day: int = 1) -> Transaction:
    return Transaction(
        transaction_id=transaction_id,
        pet_id=pet_id,
        adoption_date=datetime(2025, 11, day, 12, 0, tzinfo=timezone.utc),
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the transactions table created
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_petadoptions",
        password="test_password",
        dbname="test_adoptions",
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, 'r') as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="function")
def db_connection(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection for a single test

    Yields:
        psycopg Connection object
    """
    with psycopg.connect(postgres_container.get_connection_url()) as conn:
        yield conn
        conn.rollback()


@pytest.fixture(scope="function")
def clean_db(db_connection) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database with an empty transactions table

    Yields:
        psycopg Connection object with clean database
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE transactions")
    db_connection.commit()

    yield db_connection


@pytest.fixture(scope="function")
def pool_kwargs(postgres_container) -> dict[str, Any]:
    """Connection arguments for DatabaseConnectionPool against the container"""
    return {
        "host": postgres_container.get_container_host_ip(),
        "port": int(postgres_container.get_exposed_port(5432)),
        "database": "test_adoptions",
        "user": "test_petadoptions",
        "password": "test_password",
    }


# =======================
# PET SEARCH STUB (HTTP)
# =======================

class _PetSearchHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        parsed = urlparse(self.path)
        pet_id = parse_qs(parsed.query).get("petid", [""])[0]
        entry = self.server.responses.get(pet_id, (404, "not found"))
        status, body = entry[:2]
        if len(entry) > 2:
            time.sleep(entry[2])
        if not isinstance(body, str):
            body = json.dumps(body)

        encoded = body.encode()
        try:
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)
        except (BrokenPipeError, ConnectionResetError):
            pass  # client gave up on a delayed response

    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="function")
def pet_search_server() -> Generator[tuple[str, dict], None, None]:
    """
    Run a local pet search stub

    Yields:
        (base_url, responses) where responses maps pet id to (status, body) or
        (status, body, delay_seconds)
    """
    server = ThreadingHTTPServer(("127.0.0.1", 0), _PetSearchHandler)
    server.responses = {}
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}/api/search?", server.responses
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture(scope="function")
def http_session() -> Generator[requests.Session, None, None]:
    session = requests.Session()
    yield session
    session.close()


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_file() -> str:
    """Path to config/test.env"""
    return os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )
