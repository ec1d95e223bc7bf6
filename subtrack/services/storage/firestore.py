"""
Cloud Firestore Storage Implementation

Subscriptions live at `artifacts/{app_id}/users/{user_id}/subscriptions`,
one document per subscription with fields {name, cost, cycle, createdAt}.

The live query is a Firestore `on_snapshot` watch. Firestore calls the
watch callback on its own thread with the complete document set, which we
convert and publish into the LiveQuery handle.

TRADEOFFS:
- The client is synchronous; writes run in a worker thread so they
  don't block the caller's event loop.
- Connection setup is retried; individual writes are not. A failed write
  is reported to the user, who decides whether to try again.
- Snapshots are ordered client-side by createdAt so documents without the
  field (written by older clients) still show up.
"""

import asyncio
from typing import Any, Optional

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from subtrack.config import get_settings
from subtrack.config.settings import FirebaseSettings
from subtrack.models.subscription import Subscription, SubscriptionDraft, utc_now
from subtrack.services.storage.interface import (
    LiveQuery,
    NotFoundError,
    ReadFailureError,
    StoreUnavailableError,
    SubscriptionStoreInterface,
    WriteFailureError,
)


logger = structlog.get_logger(__name__)


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    SCOPES = ["https://www.googleapis.com/auth/datastore"]

    def __init__(self, settings: Optional[FirebaseSettings] = None):
        self._client: Optional[firestore.Client] = None
        self._settings = settings or get_settings().firebase

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firestore.Client:
        """
        Establish the Firestore client.

        Uses service account credentials when a path is configured,
        application-default credentials otherwise.
        """
        if self._client is None:
            try:
                credentials = None
                if self._settings.credentials_path:
                    credentials = Credentials.from_service_account_file(
                        self._settings.credentials_path,
                        scopes=self.SCOPES,
                    )
                self._client = firestore.Client(
                    project=self._settings.project_id,
                    credentials=credentials,
                )
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Firestore: {e}")

        return self._client

    def collection(self, path: str):
        return self.connect().collection(path)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


class FirestoreSubscriptionStore(SubscriptionStoreInterface):
    """
    Firestore implementation of the subscription store.
    """

    def __init__(self, app_id: str, client: Optional[FirestoreClient] = None):
        super().__init__(app_id)
        self._client = client or FirestoreClient()

    def _document_to_subscription(self, doc) -> Optional[Subscription]:
        """Convert a DocumentSnapshot, skipping documents that don't parse."""
        data: dict[str, Any] = doc.to_dict() or {}
        try:
            return Subscription.from_document(doc.id, data)
        except ValidationError as e:
            logger.warning(
                "malformed_subscription_skipped",
                document_id=doc.id,
                error=str(e),
            )
            return None

    def _to_subscriptions(self, docs) -> list[Subscription]:
        subscriptions = [
            sub for sub in (self._document_to_subscription(doc) for doc in docs)
            if sub is not None
        ]
        subscriptions.sort(key=lambda s: (s.created_at, s.id))
        return subscriptions

    def _attach(self, handle: LiveQuery) -> None:
        collection = self._client.collection(handle.path)

        def on_snapshot(docs, changes, read_time) -> None:
            try:
                subscriptions = self._to_subscriptions(docs)
            except Exception as e:
                handle.fail(ReadFailureError(f"Failed to read snapshot: {e}"))
                return
            handle.publish(subscriptions)

        try:
            watch = collection.on_snapshot(on_snapshot)
        except google_exceptions.GoogleAPIError as e:
            raise ReadFailureError(f"Failed to listen on {handle.path}: {e}") from e

        handle.set_detach(watch.unsubscribe)

    async def create(self, user_id: str, draft: SubscriptionDraft) -> Subscription:
        created_at = utc_now()
        document = {**draft.to_document(), "createdAt": created_at}
        try:
            _, doc_ref = await asyncio.to_thread(
                self._client.collection(self.collection_path(user_id)).add,
                document,
            )
        except Exception as e:
            raise WriteFailureError("save", f"Failed to create subscription: {e}") from e

        return Subscription(
            id=doc_ref.id,
            created_at=created_at,
            **draft.model_dump(),
        )

    async def update(
        self,
        user_id: str,
        subscription_id: str,
        draft: SubscriptionDraft,
    ) -> None:
        try:
            doc_ref = self._client.collection(
                self.collection_path(user_id)
            ).document(subscription_id)
            await asyncio.to_thread(doc_ref.update, draft.to_document())
        except google_exceptions.NotFound:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        except Exception as e:
            raise WriteFailureError("save", f"Failed to update subscription: {e}") from e

    async def delete(self, user_id: str, subscription_id: str) -> None:
        try:
            doc_ref = self._client.collection(
                self.collection_path(user_id)
            ).document(subscription_id)
            await asyncio.to_thread(doc_ref.delete)
        except Exception as e:
            raise WriteFailureError("delete", f"Failed to delete subscription: {e}") from e

    def close(self) -> None:
        super().close()
        self._client.close()
