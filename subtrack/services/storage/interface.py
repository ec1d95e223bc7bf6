"""
Abstract Subscription Store Interface

We define an abstract interface for the document store so that:
1. Firestore can be swapped for another backend
2. In-memory storage can be used for tests and offline runs
3. Business logic stays decoupled from the SDK

The store exposes two things:
- a LiveQuery handle that receives full snapshots of one user's collection
- fire-and-forget writes (create/update/delete) that raise on failure

The interface is intentionally small - it is not an ORM.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

import structlog

from subtrack.models.subscription import (
    Subscription,
    SubscriptionDraft,
    SubscriptionSnapshot,
)


logger = structlog.get_logger(__name__)

SUBSCRIPTIONS_PATH = "artifacts/{app_id}/users/{user_id}/subscriptions"

SnapshotCallback = Callable[[SubscriptionSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Document not found in storage."""
    pass


class StoreUnavailableError(StorageError):
    """Could not connect to the storage backend."""
    pass


class ReadFailureError(StorageError):
    """The live query reported an error."""
    pass


class WriteFailureError(StorageError):
    """A create, update or delete was rejected."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(message)


class LiveQuery:
    """
    Handle on a standing query over one user's subscriptions.

    Backends call `publish()` with the full current set every time the
    data changes and `fail()` when the underlying listener errors.
    Consumers either poll `latest()`, block on `next()`, or register
    callbacks with `on_snapshot()` / `on_error()`.

    `close()` detaches the backend listener exactly once. A closed handle
    ignores further publishes, so a late emission from a detached listener
    can never reach the page.
    """

    def __init__(
        self,
        user_id: str,
        path: str,
        detach: Optional[Callable[[], None]] = None,
    ):
        self.user_id = user_id
        self.path = path
        self._detach = detach
        self._cond = threading.Condition()
        self._latest: Optional[SubscriptionSnapshot] = None
        self._last_read = 0
        self._sequence = 0
        self._error: Optional[Exception] = None
        self._closed = False
        self._snapshot_callbacks: list[SnapshotCallback] = []
        self._error_callbacks: list[ErrorCallback] = []
        self._close_callbacks: list[Callable[["LiveQuery"], None]] = []

    # -- backend side ---------------------------------------------------------

    def set_detach(self, detach: Callable[[], None]) -> None:
        """Attach the backend's unsubscribe function once the listener exists."""
        with self._cond:
            already_closed = self._closed
            if not already_closed:
                self._detach = detach
        if already_closed:
            detach()

    def publish(self, subscriptions: list[Subscription]) -> Optional[SubscriptionSnapshot]:
        """Replace the current snapshot with a new full set."""
        with self._cond:
            if self._closed:
                return None
            self._sequence += 1
            snapshot = SubscriptionSnapshot(
                subscriptions=list(subscriptions),
                sequence=self._sequence,
            )
            self._latest = snapshot
            self._error = None
            self._cond.notify_all()
            callbacks = list(self._snapshot_callbacks)

        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("snapshot_callback_failed", path=self.path)
        return snapshot

    def fail(self, error: Exception) -> None:
        """Record a read error; the handle stays open and best-effort."""
        with self._cond:
            if self._closed:
                return
            self._error = error
            self._cond.notify_all()
            callbacks = list(self._error_callbacks)

        for callback in callbacks:
            try:
                callback(error)
            except Exception:
                logger.exception("error_callback_failed", path=self.path)

    # -- consumer side --------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> Optional[Exception]:
        """Last read error, cleared by the next successful snapshot."""
        return self._error

    def latest(self) -> Optional[SubscriptionSnapshot]:
        """Most recent snapshot, or None before the first emission."""
        with self._cond:
            if self._latest is not None:
                self._last_read = self._latest.sequence
            return self._latest

    def next(self, timeout: Optional[float] = None) -> Optional[SubscriptionSnapshot]:
        """
        Block until a snapshot newer than the last one read arrives.

        Returns None on timeout or when the handle is closed.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._closed or self._sequence > self._last_read,
                timeout=timeout,
            )
            if self._closed or self._sequence <= self._last_read:
                return None
            self._last_read = self._sequence
            return self._latest

    def on_snapshot(self, callback: SnapshotCallback) -> None:
        """Register a snapshot listener; it receives the current snapshot at once."""
        with self._cond:
            self._snapshot_callbacks.append(callback)
            current = self._latest
        if current is not None:
            callback(current)

    def on_error(self, callback: ErrorCallback) -> None:
        with self._cond:
            self._error_callbacks.append(callback)

    def on_close(self, callback: Callable[["LiveQuery"], None]) -> None:
        with self._cond:
            self._close_callbacks.append(callback)

    def close(self) -> None:
        """Detach the listener. Idempotent."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            detach = self._detach
            self._detach = None
            self._snapshot_callbacks.clear()
            self._error_callbacks.clear()
            close_callbacks = list(self._close_callbacks)
            self._close_callbacks.clear()
            self._cond.notify_all()

        if detach is not None:
            try:
                detach()
            except Exception:
                logger.exception("live_query_detach_failed", path=self.path)
        for callback in close_callbacks:
            callback(self)

    def __enter__(self) -> "LiveQuery":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SubscriptionStoreInterface(ABC):
    """
    Abstract interface for the subscription document store.

    Any backend (Firestore, in-memory, ...) must implement these methods.
    The base class keeps track of open live queries so that `close()`
    can release all of them on shutdown.
    """

    def __init__(self, app_id: str):
        self.app_id = app_id
        self._open_queries: set[LiveQuery] = set()
        self._queries_lock = threading.Lock()

    def collection_path(self, user_id: str) -> str:
        """Path of one user's subscriptions collection."""
        return SUBSCRIPTIONS_PATH.format(app_id=self.app_id, user_id=user_id)

    def listen(self, user_id: str) -> LiveQuery:
        """
        Open a live query on the user's subscriptions.

        Raises:
            ReadFailureError: If the listener cannot be attached
        """
        handle = LiveQuery(user_id=user_id, path=self.collection_path(user_id))
        with self._queries_lock:
            self._open_queries.add(handle)
        handle.on_close(self._forget)
        try:
            self._attach(handle)
        except Exception as e:
            handle.close()
            if isinstance(e, ReadFailureError):
                raise
            raise ReadFailureError(f"Failed to open live query: {e}") from e
        return handle

    def _forget(self, handle: LiveQuery) -> None:
        with self._queries_lock:
            self._open_queries.discard(handle)

    @property
    def open_query_count(self) -> int:
        with self._queries_lock:
            return len(self._open_queries)

    def close(self) -> None:
        """Close every live query opened through this store."""
        with self._queries_lock:
            handles = list(self._open_queries)
        for handle in handles:
            handle.close()

    @abstractmethod
    def _attach(self, handle: LiveQuery) -> None:
        """
        Start delivering snapshots for `handle.user_id` into `handle`.

        Implementations must call `handle.set_detach()` with a function
        that stops the backend listener.
        """
        pass

    @abstractmethod
    async def create(self, user_id: str, draft: SubscriptionDraft) -> Subscription:
        """
        Create a subscription.

        Args:
            user_id: Owner of the collection
            draft: Name, cost and cycle

        Returns:
            The stored subscription, with its new ID and createdAt

        Raises:
            WriteFailureError: If the store rejects the write
        """
        pass

    @abstractmethod
    async def update(
        self,
        user_id: str,
        subscription_id: str,
        draft: SubscriptionDraft,
    ) -> None:
        """
        Overwrite name, cost and cycle of an existing subscription.

        createdAt is left untouched.

        Raises:
            NotFoundError: If the subscription doesn't exist
            WriteFailureError: If the store rejects the write
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, subscription_id: str) -> None:
        """
        Delete a subscription.

        Raises:
            WriteFailureError: If the store rejects the delete
        """
        pass
