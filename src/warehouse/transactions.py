"""
Read access to the adoption transactions table.

The transaction source is the only component that touches the store. It
runs one bounded, read-only query; any failure is fatal for the caller.
"""

import time

import psycopg
from psycopg import sql
from pydantic import ValidationError as ModelValidationError

from src.core.context import ExecutionContext
from src.core.models import Transaction
from src.observability import metrics
from src.observability.logger import get_logger
from src.utils.validation import sanitize_sql_identifier, validate_limit
from src.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

DEFAULT_TRANSACTION_LIMIT = 25
DEFAULT_TABLE = "transactions"


def _as_text(value):
    # Identifier columns may be typed as integers or UUIDs in some schemas
    return value if value is None or isinstance(value, str) else str(value)


class TransactionSourceError(Exception):
    """Raised when the most recent transactions cannot be read."""
    pass


class TransactionSource:
    """
    Fetches the most recent adoption transactions.

    Rows are returned newest first (ordered by adoption_date). The limit is
    fixed when the source is built and cannot be changed per call.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        limit: int = DEFAULT_TRANSACTION_LIMIT,
        table: str = DEFAULT_TABLE,
    ):
        """
        Initialize transaction source.

        Args:
            pool: Database connection pool
            limit: Number of most recent transactions to read
            table: Name of the transactions table
        """
        self.pool = pool
        self.limit = validate_limit(limit, field_name="transaction_limit")
        self.table = sanitize_sql_identifier(table, field_name="table")

    def _build_query(self) -> sql.Composed:
        return sql.SQL(
            "SELECT pet_id, transaction_id, adoption_date FROM {table} "
            "ORDER BY adoption_date DESC LIMIT %s"
        ).format(table=sql.Identifier(self.table))

    def fetch_recent_transactions(self, ctx: ExecutionContext | None = None) -> list[Transaction]:
        """
        Read the most recent transactions.

        Args:
            ctx: Execution context; a deadline bounds the query through
                the server-side statement timeout

        Returns:
            Transactions ordered newest first (at most ``limit``)

        Raises:
            TransactionSourceError: If the context is already cancelled or
                the query fails
        """
        if ctx is not None and ctx.cancelled:
            raise TransactionSourceError("Context cancelled before fetching transactions")

        query = self._build_query()
        logger.debug("Fetching recent transactions", extra={"table": self.table, "limit": self.limit})

        start = time.perf_counter()
        try:
            with self.pool.get_cursor() as cur:
                remaining = ctx.remaining() if ctx is not None else None
                if remaining is not None:
                    timeout_ms = max(int(remaining * 1000), 1)
                    cur.execute(sql.SQL("SET LOCAL statement_timeout = {}").format(sql.Literal(timeout_ms)))
                cur.execute(query, (self.limit,))
                rows = cur.fetchall()
        except psycopg.Error as e:
            metrics.increment_counter(
                metrics.errors_total,
                error_type=type(e).__name__,
                component="transaction_source",
            )
            logger.error(
                f"Failed to fetch transactions: {e}",
                extra={"table": self.table, "limit": self.limit},
            )
            raise TransactionSourceError(f"Failed to fetch transactions: {e}") from e
        finally:
            metrics.observe_histogram(
                metrics.transaction_fetch_duration_seconds,
                time.perf_counter() - start,
            )

        transactions = []
        for row in rows:
            transaction = self._decode_row(row)
            if transaction is not None:
                transactions.append(transaction)

        logger.info(
            f"Fetched {len(transactions)} transactions",
            extra={"row_count": len(rows), "transaction_count": len(transactions)},
        )
        return transactions

    def _decode_row(self, row: dict) -> Transaction | None:
        """
        Decode one row, or log and return None if it is malformed.
        """
        try:
            return Transaction(
                transaction_id=_as_text(row["transaction_id"]),
                pet_id=_as_text(row["pet_id"]),
                adoption_date=row["adoption_date"],
            )
        except (KeyError, TypeError, ModelValidationError) as e:
            logger.error(
                f"Skipping malformed transaction row: {e}",
                extra={"transaction_id": row.get("transaction_id") if isinstance(row, dict) else None},
            )
            return None
