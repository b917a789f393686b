"""
Fan-out/fan-in aggregation of the latest adoptions.

The transactions are read first. Then one pet search lookup per transaction
runs on a thread pool. Each lookup puts its merged Adoption records on a
shared queue. A barrier thread waits for every lookup to finish and then
closes the queue. Meanwhile the calling thread drains the queue as records
arrive. Output order follows arrival and is not stable between runs.
"""

import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

from src.core.context import ExecutionContext, background
from src.core.models import Adoption, AggregationResult, Transaction
from src.enrichment.pet_search import EnrichmentError, LookupCancelledError, PetSearchClient
from src.observability import metrics
from src.observability.logger import get_logger, log_operation
from src.utils.validation import ValidationError, validate_base_url
from src.warehouse.transactions import TransactionSource, TransactionSourceError

logger = get_logger(__name__)

# Put on the queue by the barrier once every lookup has finished
_CLOSED = object()


class _LookupTally:
    """Thread-safe count of lookups that completed successfully."""

    def __init__(self):
        self._lock = threading.Lock()
        self._succeeded = 0

    def success(self) -> None:
        with self._lock:
            self._succeeded += 1

    @property
    def succeeded(self) -> int:
        with self._lock:
            return self._succeeded


class AdoptionAggregator:
    """
    Aggregates the most recent adoptions with their pet attributes.

    Failed lookups are logged and dropped; only a failure to read the
    transactions is reported to the caller.
    """

    def __init__(
        self,
        source: TransactionSource,
        client: PetSearchClient,
        max_workers: int | None = None,
        poll_interval: float = 0.05,
    ):
        """
        Initialize aggregator.

        Args:
            source: Transaction source to read from
            client: Pet search client shared by all lookups
            max_workers: Cap on concurrent lookups (None = one per transaction)
            poll_interval: How often the drain loop re-checks cancellation, in seconds
        """
        if max_workers is not None and max_workers <= 0:
            raise ValidationError(f"max_workers must be a positive integer, got {max_workers}")
        if poll_interval <= 0:
            raise ValidationError(f"poll_interval must be positive, got {poll_interval}")

        self.source = source
        self.client = client
        self.max_workers = max_workers
        self.poll_interval = poll_interval

    def get_latest_adoptions(
        self,
        ctx: ExecutionContext | None,
        pet_search_url: str,
    ) -> list[Adoption]:
        """
        Return the latest adoptions merged with their pet attributes.

        Args:
            ctx: Execution context; cancelling it stops the aggregation and
                returns whatever was collected so far
            pet_search_url: Base URL of the pet search service

        Returns:
            Adoption records in no particular order (possibly empty)

        Raises:
            TransactionSourceError: If the transactions cannot be read
        """
        return self.aggregate(ctx, pet_search_url).adoptions

    def aggregate(
        self,
        ctx: ExecutionContext | None,
        pet_search_url: str,
    ) -> AggregationResult:
        """
        Same as get_latest_adoptions, also reporting lookup failures.

        Raises:
            TransactionSourceError: If the transactions cannot be read
        """
        ctx = ctx or background()
        pet_search_url = validate_base_url(pet_search_url)
        start = time.perf_counter()

        with log_operation("Aggregating latest adoptions", logger=logger, pet_search_url=pet_search_url):
            try:
                transactions = self.source.fetch_recent_transactions(ctx)
            except TransactionSourceError:
                metrics.observe_histogram(
                    metrics.aggregation_duration_seconds,
                    time.perf_counter() - start,
                    outcome="error",
                )
                raise

            result = self._enrich(ctx, transactions, pet_search_url)

        metrics.record_aggregation(
            outcome="cancelled" if result.cancelled else "complete",
            duration_seconds=time.perf_counter() - start,
            transactions=result.transactions_fetched,
            adoptions=len(result.adoptions),
        )
        if result.failed_lookups:
            logger.warning(
                f"{result.failed_lookups} of {result.transactions_fetched} lookups failed",
                extra={"failed_lookups": result.failed_lookups, "cancelled": result.cancelled},
            )
        return result

    def _enrich(
        self,
        ctx: ExecutionContext,
        transactions: list[Transaction],
        pet_search_url: str,
    ) -> AggregationResult:
        if not transactions:
            return AggregationResult()

        adoptions_queue: queue.Queue = queue.Queue()
        tally = _LookupTally()
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers or len(transactions),
            thread_name_prefix="pet-search",
        )
        # Cancelled when draining stops early, whether by cancel() or deadline
        lookups = ctx.child()

        cancelled = False
        try:
            futures = [
                executor.submit(
                    self._search_for_pet,
                    lookups.child(),
                    adoptions_queue,
                    transaction,
                    pet_search_url,
                    tally,
                )
                for transaction in transactions
            ]

            barrier = threading.Thread(
                target=self._close_when_done,
                args=(futures, adoptions_queue),
                name="adoption-barrier",
                daemon=True,
            )
            barrier.start()

            adoptions, cancelled = self._drain(ctx, adoptions_queue)
        finally:
            if cancelled:
                lookups.cancel()
            lookups.release()
            # Interrupted lookups finish on their own; their results are discarded
            executor.shutdown(wait=not cancelled, cancel_futures=cancelled)

        return AggregationResult(
            adoptions=adoptions,
            transactions_fetched=len(transactions),
            failed_lookups=len(transactions) - tally.succeeded,
            cancelled=cancelled,
        )

    def _search_for_pet(
        self,
        ctx: ExecutionContext,
        adoptions_queue: queue.Queue,
        transaction: Transaction,
        pet_search_url: str,
        tally: _LookupTally,
    ) -> None:
        """
        Look up one transaction's pet and queue the merged records.
        """
        extra = {"transaction_id": transaction.transaction_id, "pet_id": transaction.pet_id}
        try:
            pets = self.client.fetch(ctx, pet_search_url, transaction.pet_id)
        except LookupCancelledError as e:
            logger.warning(f"Lookup cancelled: {e.message}", extra=extra)
            return
        except EnrichmentError as e:
            logger.error(f"Lookup failed: {e.message}", extra=extra)
            return

        # The service returns an array; each element becomes its own adoption
        for pet in pets:
            adoptions_queue.put(Adoption.merge(transaction, pet))

        tally.success()

    @staticmethod
    def _close_when_done(futures: list[Future], adoptions_queue: queue.Queue) -> None:
        wait(futures)
        for future in futures:
            if future.cancelled():
                continue
            exc = future.exception()
            if exc is not None:
                logger.error(
                    f"Lookup task crashed: {exc}",
                    exc_info=(type(exc), exc, exc.__traceback__),
                )
        adoptions_queue.put(_CLOSED)

    def _drain(self, ctx: ExecutionContext, adoptions_queue: queue.Queue) -> tuple[list[Adoption], bool]:
        """
        Collect adoptions until the barrier closes the queue.

        Returns:
            (adoptions, cancelled) where cancelled is True if the context was
            cancelled before every lookup had finished
        """
        adoptions: list[Adoption] = []
        while True:
            if ctx.cancelled:
                closed = self._drain_ready(adoptions_queue, adoptions)
                if not closed:
                    logger.warning(
                        "Aggregation cancelled before all lookups finished",
                        extra={"collected": len(adoptions)},
                    )
                return adoptions, not closed

            try:
                item = adoptions_queue.get(timeout=ctx.bound_timeout(self.poll_interval))
            except queue.Empty:
                continue

            if item is _CLOSED:
                return adoptions, False

            logger.debug(
                "Adoption collected",
                extra={"pet_id": item.pet_id, "pet_type": item.pet_type, "pet_color": item.pet_color},
            )
            adoptions.append(item)

    @staticmethod
    def _drain_ready(adoptions_queue: queue.Queue, adoptions: list[Adoption]) -> bool:
        """Move already-queued adoptions into the list; True if the queue was closed."""
        while True:
            try:
                item = adoptions_queue.get_nowait()
            except queue.Empty:
                return False
            if item is _CLOSED:
                return True
            adoptions.append(item)
