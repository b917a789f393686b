"""
HTTP client for the pet search service.

One lookup is a single GET of the base URL with a ``petid`` query parameter,
answered by a JSON array of attribute objects. A lookup is never retried: any transport error,
non-200 status or undecodable body fails that lookup only.

Sessions created by the client mount CancellableAdapter, which lets a
cancelled context shut down the socket of a request that is still waiting
on the server.
"""

import socket
import threading
import time
from functools import partial
from typing import Any, Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from pydantic import ValidationError as ModelValidationError
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from src.core.context import ExecutionContext
from src.core.models import PetAttributes
from src.observability import metrics
from src.observability.logger import get_logger
from src.utils.validation import validate_timeout

logger = get_logger(__name__)

DEFAULT_LOOKUP_TIMEOUT = 10.0

# Socket watcher of the lookup running on the current thread
_active = threading.local()


class EnrichmentError(Exception):
    """Raised when a pet search lookup fails."""

    def __init__(self, pet_id: str, message: str):
        self.pet_id = pet_id
        self.message = message
        super().__init__(f"[petid={pet_id}] {message}")


class LookupCancelledError(EnrichmentError):
    """Raised when the context was cancelled before or during the request."""
    pass


def _shutdown_socket(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug(f"Socket already closed: {e}")


class _WatchedConnectionMixin:
    """Reports its socket to the current lookup once the request is sent."""

    def request(self, *args, **kwargs):
        super().request(*args, **kwargs)
        watch = getattr(_active, "watch", None)
        if watch is not None and self.sock is not None:
            watch(self.sock)


class _WatchedHTTPConnection(_WatchedConnectionMixin, HTTPConnection):
    pass


class _WatchedHTTPSConnection(_WatchedConnectionMixin, HTTPSConnection):
    pass


class _WatchedHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = _WatchedHTTPConnection


class _WatchedHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = _WatchedHTTPSConnection


class CancellableAdapter(HTTPAdapter):
    """HTTPAdapter whose connections can be torn down by a cancelled context."""

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _WatchedHTTPConnectionPool,
            "https": _WatchedHTTPSConnectionPool,
        }


def new_session() -> requests.Session:
    """Create a session whose in-flight requests honour context cancellation."""
    session = requests.Session()
    adapter = CancellableAdapter()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class PetSearchClient:
    """
    Client for the pet search service.

    The underlying requests.Session is shared by every lookup issued
    through this client, including lookups running on different threads.
    """

    def __init__(self, session: requests.Session | None = None, timeout: float = DEFAULT_LOOKUP_TIMEOUT):
        """
        Initialize pet search client.

        Args:
            session: HTTP session to reuse (a new one mounting
                CancellableAdapter is created if omitted)
            timeout: Per-request timeout in seconds, further bounded by the
                deadline of the context passed to each lookup
        """
        self._owns_session = session is None
        self.session = session or new_session()
        self.timeout = validate_timeout(timeout, field_name="lookup_timeout")

    @staticmethod
    def build_url(base_url: str, pet_id: str) -> str:
        """
        Set the pet id as the ``petid`` query parameter.

        Other parameters already on the base URL are kept; a ``petid``
        already there is replaced.
        """
        parts = urlsplit(base_url)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "petid"]
        query.append(("petid", pet_id))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def fetch(self, ctx: ExecutionContext | None, base_url: str, pet_id: str) -> list[PetAttributes]:
        """
        Look up the attributes of one pet.

        Args:
            ctx: Execution context bounding the request; cancelling it
                interrupts a request still in flight
            base_url: Pet search endpoint
            pet_id: Pet to look up

        Returns:
            Decoded attribute records (zero, one or more)

        Raises:
            LookupCancelledError: If ctx is cancelled or out of time
            EnrichmentError: On transport error, non-200 status or bad body
        """
        timeout = ctx.bound_timeout(self.timeout) if ctx is not None else self.timeout
        if (ctx is not None and ctx.cancelled) or timeout <= 0:
            metrics.record_lookup("cancelled")
            raise LookupCancelledError(pet_id, "context cancelled before request")

        start = time.perf_counter()
        try:
            pets = self._get(ctx, base_url, pet_id, timeout)
        except EnrichmentError as e:
            if ctx is not None and ctx.cancelled:
                metrics.record_lookup("cancelled", time.perf_counter() - start)
                raise LookupCancelledError(pet_id, f"context cancelled during request: {e.message}") from e
            metrics.record_lookup("failure", time.perf_counter() - start)
            raise

        metrics.record_lookup("success", time.perf_counter() - start)
        return pets

    def _get(self, ctx: ExecutionContext | None, base_url: str, pet_id: str, timeout: float) -> list[PetAttributes]:
        releases: list[Callable[[], None]] = []
        if ctx is not None:
            _active.watch = lambda sock: releases.append(ctx.on_cancel(partial(_shutdown_socket, sock)))
        try:
            payload = self._send(base_url, pet_id, timeout)
        finally:
            _active.watch = None
            for release in releases:
                release()

        return self.decode(pet_id, payload)

    def _send(self, base_url: str, pet_id: str, timeout: float) -> Any:
        try:
            url = self.build_url(base_url, pet_id)
            response = self.session.get(url, timeout=timeout, headers={"Accept": "application/json"})
        except requests.RequestException as e:
            raise EnrichmentError(pet_id, f"request failed: {e}") from e

        try:
            if response.status_code != 200:
                raise EnrichmentError(pet_id, f"unexpected status {response.status_code}")
            try:
                return response.json()
            except ValueError as e:
                raise EnrichmentError(pet_id, f"invalid JSON body: {e}") from e
        finally:
            response.close()

    @staticmethod
    def decode(pet_id: str, payload: Any) -> list[PetAttributes]:
        """
        Decode a pet search response body.

        A JSON ``null`` body decodes to no records. Missing fields default
        to empty strings.

        Raises:
            EnrichmentError: If the body is not an array of objects
        """
        if payload is None:
            return []

        if not isinstance(payload, list):
            raise EnrichmentError(pet_id, f"expected a JSON array, got {type(payload).__name__}")

        pets = []
        for idx, item in enumerate(payload):
            if not isinstance(item, dict):
                raise EnrichmentError(
                    pet_id, f"element {idx} is {type(item).__name__}, expected an object"
                )
            try:
                pets.append(PetAttributes.model_validate(item))
            except ModelValidationError as e:
                raise EnrichmentError(pet_id, f"element {idx} failed to decode: {e}") from e

        return pets

    def lookup(self, ctx: ExecutionContext | None, base_url: str, pet_id: str) -> list[PetAttributes]:
        """
        Look up the attributes of one pet, swallowing failures.

        Failures are logged and produce an empty list.
        """
        try:
            return self.fetch(ctx, base_url, pet_id)
        except EnrichmentError as e:
            logger.error(f"Pet search lookup failed: {e.message}", extra={"pet_id": pet_id})
            return []

    def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
