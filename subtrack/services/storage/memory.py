"""
In-Memory Storage Implementation

A dict-backed store with the same live-query behavior as Firestore:
every write is followed by a full snapshot to every listener on the
affected collection. Used for tests and for offline runs when the
cloud backend is not configured.
"""

import threading
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from subtrack.models.subscription import Subscription, SubscriptionDraft, utc_now
from subtrack.services.storage.interface import (
    LiveQuery,
    NotFoundError,
    SubscriptionStoreInterface,
    WriteFailureError,
)


class InMemorySubscriptionStore(SubscriptionStoreInterface):
    """
    In-memory implementation of the subscription store.

    Collections are keyed by their full document path, so two users
    (or two app IDs) never see each other's data.
    """

    def __init__(self, app_id: str = "default-app-id"):
        super().__init__(app_id)
        self._lock = threading.RLock()
        self._collections: dict[str, dict[str, Subscription]] = {}
        self._listeners: dict[str, list[LiveQuery]] = {}
        self._last_created: Optional[datetime] = None
        # Set to an exception to make the next write fail (tests)
        self.fail_next_write: Optional[Exception] = None

    def _ordered(self, path: str) -> list[Subscription]:
        docs = self._collections.get(path, {})
        return sorted(docs.values(), key=lambda s: (s.created_at, s.id))

    def _emit(self, path: str) -> None:
        with self._lock:
            subscriptions = self._ordered(path)
            listeners = list(self._listeners.get(path, []))
        for handle in listeners:
            handle.publish(subscriptions)

    def _check_failure(self, operation: str) -> None:
        if self.fail_next_write is not None:
            error = self.fail_next_write
            self.fail_next_write = None
            raise WriteFailureError(operation, f"Failed to {operation} subscription: {error}")

    def _next_created_at(self) -> datetime:
        # Keep createdAt strictly increasing so ordering is stable
        now = utc_now()
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    def _attach(self, handle: LiveQuery) -> None:
        path = handle.path
        with self._lock:
            self._listeners.setdefault(path, []).append(handle)

        def detach() -> None:
            with self._lock:
                listeners = self._listeners.get(path, [])
                if handle in listeners:
                    listeners.remove(handle)

        handle.set_detach(detach)
        handle.publish(self._ordered(path))

    def listener_count(self, user_id: str) -> int:
        """Number of attached listeners on a user's collection."""
        with self._lock:
            return len(self._listeners.get(self.collection_path(user_id), []))

    def get(self, user_id: str, subscription_id: str) -> Optional[Subscription]:
        with self._lock:
            return self._collections.get(self.collection_path(user_id), {}).get(subscription_id)

    def fail_listeners(self, user_id: str, error: Exception) -> None:
        """Push a read error to every listener on a user's collection (tests)."""
        with self._lock:
            listeners = list(self._listeners.get(self.collection_path(user_id), []))
        for handle in listeners:
            handle.fail(error)

    async def create(self, user_id: str, draft: SubscriptionDraft) -> Subscription:
        self._check_failure("save")
        path = self.collection_path(user_id)
        with self._lock:
            subscription = Subscription(
                id=uuid4().hex,
                created_at=self._next_created_at(),
                **draft.model_dump(),
            )
            self._collections.setdefault(path, {})[subscription.id] = subscription
        self._emit(path)
        return subscription

    async def update(
        self,
        user_id: str,
        subscription_id: str,
        draft: SubscriptionDraft,
    ) -> None:
        self._check_failure("save")
        path = self.collection_path(user_id)
        with self._lock:
            docs = self._collections.get(path, {})
            existing = docs.get(subscription_id)
            if existing is None:
                raise NotFoundError(f"Subscription not found: {subscription_id}")
            docs[subscription_id] = existing.model_copy(update=draft.model_dump())
        self._emit(path)

    async def delete(self, user_id: str, subscription_id: str) -> None:
        self._check_failure("delete")
        path = self.collection_path(user_id)
        with self._lock:
            self._collections.get(path, {}).pop(subscription_id, None)
        self._emit(path)
