"""
Adoption service wiring.

Builds the connection pool, transaction source, pet search client and
aggregator from AggregatorSettings, and owns their lifecycle.
"""

import requests

from src.aggregation.aggregator import AdoptionAggregator
from src.core.config import AggregatorSettings
from src.core.context import ExecutionContext
from src.core.models import Adoption, AggregationResult
from src.enrichment.pet_search import PetSearchClient
from src.observability import metrics
from src.observability.logger import configure_logging, get_logger
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.transactions import TransactionSource

logger = get_logger(__name__)


def build_aggregator(
    settings: AggregatorSettings,
    pool: DatabaseConnectionPool,
    session: requests.Session | None = None,
) -> AdoptionAggregator:
    """
    Wire a transaction source and pet search client into an aggregator.

    Args:
        settings: Loaded configuration
        pool: Connection pool the transaction source reads through
        session: HTTP session for lookups (the client creates one if omitted)

    Returns:
        AdoptionAggregator ready to call with settings.pet_search.url
    """
    source = TransactionSource(
        pool,
        limit=settings.aggregation.transaction_limit,
        table=settings.database.table,
    )
    client = PetSearchClient(session=session, timeout=settings.pet_search.timeout)
    return AdoptionAggregator(source, client, max_workers=settings.aggregation.max_workers)


class AdoptionService:
    """
    Entry point for callers such as an HTTP handler or a scheduled job.

    Usage:
        settings = load_settings("config/aggregator.yaml")
        with AdoptionService(settings) as service:
            adoptions = service.get_latest_adoptions(ExecutionContext(timeout=5.0))
    """

    def __init__(
        self,
        settings: AggregatorSettings,
        pool: DatabaseConnectionPool | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize adoption service.

        Args:
            settings: Loaded configuration
            pool: Connection pool to use instead of one built from settings
            session: HTTP session to use for pet search lookups
        """
        self.settings = settings
        configure_logging(settings.logging.level, settings.logging.format)

        db = settings.database
        self._owns_pool = pool is None
        self.pool = pool or DatabaseConnectionPool(
            host=db.host,
            port=db.port,
            database=db.name,
            user=db.user,
            password=db.password,
        )

        self.aggregator = build_aggregator(settings, self.pool, session=session)

    def open(self) -> None:
        """Open the connection pool if this service created it."""
        if self._owns_pool:
            self.pool.open()

    def close(self) -> None:
        """Release the HTTP session and, if owned, the connection pool."""
        self.aggregator.client.close()
        if self._owns_pool:
            self.pool.close()

    def get_latest_adoptions(self, ctx: ExecutionContext | None = None) -> list[Adoption]:
        """Latest adoptions enriched through the configured pet search URL."""
        return self.aggregator.get_latest_adoptions(ctx, self.settings.pet_search.url)

    def aggregate(self, ctx: ExecutionContext | None = None) -> AggregationResult:
        """Latest adoptions plus lookup failure counts."""
        return self.aggregator.aggregate(ctx, self.settings.pet_search.url)

    @staticmethod
    def render_metrics() -> tuple[bytes, str]:
        """Prometheus exposition body and content type for a /metrics handler."""
        return metrics.generate_metrics(), metrics.get_content_type()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
