"""
Tests for the database connection pool

Lifecycle errors are checked without a database; pool behaviour against
PostgreSQL uses testcontainers.
"""
import pytest

from src.warehouse.connection import DatabaseConnectionPool


def test_password_required(monkeypatch):
    """Test that a missing password is rejected up front"""
    monkeypatch.delenv("DB_PASSWORD", raising=False)
    with pytest.raises(ValueError):
        DatabaseConnectionPool(host="localhost")


def test_environment_defaults(monkeypatch):
    monkeypatch.setenv("DB_HOST", "db.internal")
    monkeypatch.setenv("DB_PORT", "6543")
    monkeypatch.setenv("DB_PASSWORD", "secret")
    monkeypatch.delenv("DB_NAME", raising=False)

    pool = DatabaseConnectionPool()

    assert pool.host == "db.internal"
    assert pool.port == 6543
    assert "dbname=adoptions" in pool.conninfo


def test_connection_before_open():
    """Test that using the pool before open() raises RuntimeError"""
    pool = DatabaseConnectionPool(password="secret")
    assert not pool.is_open
    with pytest.raises(RuntimeError):
        with pool.get_cursor():
            pass


@pytest.mark.integration
def test_connection_pool_initialization(pool_kwargs):
    """Test that connection pool initializes correctly"""
    pool = DatabaseConnectionPool(min_size=1, max_size=3, **pool_kwargs)

    pool.open()
    try:
        assert pool.is_open
        assert pool._pool.min_size == 1
        assert pool._pool.max_size == 3
    finally:
        pool.close()

    assert not pool.is_open


@pytest.mark.integration
def test_cursor_returns_dict_rows(pool_kwargs):
    """Test that rows come back keyed by column name"""
    with DatabaseConnectionPool(**pool_kwargs) as pool:
        with pool.get_cursor() as cur:
            cur.execute("SELECT 42 AS answer")
            rows = cur.fetchall()

    assert rows == [{"answer": 42}]


@pytest.mark.integration
def test_context_manager_closes(pool_kwargs):
    """Test using pool as context manager"""
    with DatabaseConnectionPool(**pool_kwargs) as pool:
        assert pool.is_open

    assert not pool.is_open
    with pytest.raises(RuntimeError):
        with pool.get_cursor():
            pass
