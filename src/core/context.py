"""
Cancellable execution context shared by the aggregation components.

A context carries a cancel flag and an optional deadline. Child contexts
observe their parent: cancelling the parent (or reaching its deadline)
cancels every child, while cancelling a child leaves the parent untouched.

Work that blocks outside Python's control (a socket read, for instance)
registers a callback with on_cancel() so cancel() can interrupt it.
"""

import threading
import time
from typing import Callable

from src.observability.logger import get_logger

logger = get_logger(__name__)


class ExecutionContext:
    """
    Cancel flag plus optional deadline, safe to share across threads.

    Usage:
        ctx = ExecutionContext(timeout=5.0)
        child = ctx.child()
        ctx.cancel()
        assert child.cancelled
    """

    def __init__(self, timeout: float | None = None, parent: "ExecutionContext | None" = None):
        """
        Initialize context

        Args:
            timeout: Seconds from now until the context expires (None = no deadline)
            parent: Context whose cancellation and deadline this one inherits
        """
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be non-negative, got {timeout}")

        self._parent = parent
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

        self._detach = parent.on_cancel(self.cancel) if parent is not None else None

    def child(self, timeout: float | None = None) -> "ExecutionContext":
        """Create a context that is cancelled whenever this one is."""
        return ExecutionContext(timeout=timeout, parent=self)

    def cancel(self) -> None:
        """Cancel this context and, through it, all of its children."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Cancel callback failed: {e}", exc_info=True)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run callback when this context is cancelled.

        The callback runs on the thread calling cancel(), or immediately if
        the context is already cancelled. Deadline expiry alone does not
        fire it.

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._discard(callback)

        callback()
        return lambda: None

    def _discard(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass  # already fired

    def release(self) -> None:
        """Stop observing the parent's cancel() once this context is done with."""
        if self._detach is not None:
            self._detach()
            self._detach = None

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        """True once cancelled directly, through a parent, or by deadline."""
        if self._event.is_set() or self.expired:
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> float | None:
        """
        Seconds left before the deadline

        Returns:
            None when there is no deadline, otherwise a value >= 0
        """
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def bound_timeout(self, timeout: float) -> float:
        """Clamp a timeout so it never outlives this context's deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def __repr__(self) -> str:
        return f"ExecutionContext(cancelled={self.cancelled}, remaining={self.remaining()})"


def background() -> ExecutionContext:
    """Return a fresh context with no deadline that is never cancelled by others."""
    return ExecutionContext()
