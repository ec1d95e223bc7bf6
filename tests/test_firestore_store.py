"""Tests for the Firestore store adapter (Firestore client mocked)."""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from subtrack.models.subscription import BillingCycle, SubscriptionDraft
from subtrack.services.storage import NotFoundError, ReadFailureError, WriteFailureError
from subtrack.services.storage.firestore import FirestoreSubscriptionStore


PATH = "artifacts/test-app/users/u1/subscriptions"


def make_doc(doc_id: str, data: dict) -> MagicMock:
    doc = MagicMock()
    doc.id = doc_id
    doc.to_dict.return_value = data
    return doc


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return FirestoreSubscriptionStore("test-app", client=client)


class TestFirestoreWrites:
    """Tests for create/update/delete."""

    @pytest.mark.asyncio
    async def test_create_adds_document_with_created_at(self, store, client):
        client.collection.return_value.add.return_value = (None, MagicMock(id="doc-1"))

        created = await store.create(
            "u1", SubscriptionDraft(name="Prime", cost=1499, cycle=BillingCycle.YEARLY)
        )

        client.collection.assert_called_with(PATH)
        document = client.collection.return_value.add.call_args.args[0]
        assert document["name"] == "Prime"
        assert document["cost"] == 1499.0
        assert document["cycle"] == "yearly"
        assert isinstance(document["createdAt"], datetime)
        assert created.id == "doc-1"
        assert created.created_at == document["createdAt"]

    @pytest.mark.asyncio
    async def test_writes_run_off_the_event_loop_thread(self, store, client):
        threads = []
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.delete.side_effect = lambda: threads.append(threading.get_ident())

        await store.delete("u1", "doc-1")

        assert threads
        assert threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_create_failure_is_write_failure(self, store, client):
        client.collection.return_value.add.side_effect = google_exceptions.PermissionDenied("no")
        with pytest.raises(WriteFailureError) as exc_info:
            await store.create("u1", SubscriptionDraft(name="Prime", cost=1))
        assert exc_info.value.operation == "save"

    @pytest.mark.asyncio
    async def test_update_writes_only_editable_fields(self, store, client):
        doc_ref = client.collection.return_value.document.return_value
        await store.update("u1", "doc-1", SubscriptionDraft(name="Netflix", cost=649))
        client.collection.return_value.document.assert_called_with("doc-1")
        doc_ref.update.assert_called_once_with(
            {"name": "Netflix", "cost": 649.0, "cycle": "monthly"}
        )

    @pytest.mark.asyncio
    async def test_update_missing_is_not_found(self, store, client):
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.update.side_effect = google_exceptions.NotFound("gone")
        with pytest.raises(NotFoundError):
            await store.update("u1", "doc-1", SubscriptionDraft(name="Netflix", cost=1))

    @pytest.mark.asyncio
    async def test_delete_failure_is_write_failure(self, store, client):
        doc_ref = client.collection.return_value.document.return_value
        doc_ref.delete.side_effect = google_exceptions.ServiceUnavailable("down")
        with pytest.raises(WriteFailureError) as exc_info:
            await store.delete("u1", "doc-1")
        assert exc_info.value.operation == "delete"


class TestFirestoreLiveQuery:
    """Tests for the on_snapshot watch."""

    def test_snapshot_is_converted_sorted_and_filtered(self, store, client):
        watch = MagicMock()
        collection = client.collection.return_value
        collection.on_snapshot.return_value = watch

        handle = store.listen("u1")
        callback = collection.on_snapshot.call_args.args[0]
        callback(
            [
                make_doc("b", {
                    "name": "Prime", "cost": 1499, "cycle": "yearly",
                    "createdAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
                }),
                make_doc("bad", {"name": "Broken", "cost": -1, "cycle": "monthly"}),
                make_doc("a", {
                    "name": "Netflix", "cost": 500, "cycle": "monthly",
                    "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
                }),
            ],
            [],
            None,
        )

        assert [s.id for s in handle.latest().subscriptions] == ["a", "b"]

    def test_stray_id_field_does_not_drop_document(self, store, client):
        collection = client.collection.return_value
        collection.on_snapshot.return_value = MagicMock()

        handle = store.listen("u1")
        callback = collection.on_snapshot.call_args.args[0]
        callback(
            [make_doc("a", {"id": "legacy-7", "name": "Netflix", "cost": 500, "cycle": "monthly"})],
            [],
            None,
        )

        assert [s.id for s in handle.latest().subscriptions] == ["a"]

    def test_close_unsubscribes_watch(self, store, client):
        watch = MagicMock()
        client.collection.return_value.on_snapshot.return_value = watch

        handle = store.listen("u1")
        handle.close()
        handle.close()

        watch.unsubscribe.assert_called_once()
        assert store.open_query_count == 0

    def test_attach_failure_is_read_failure(self, store, client):
        client.collection.return_value.on_snapshot.side_effect = (
            google_exceptions.PermissionDenied("rules")
        )
        with pytest.raises(ReadFailureError):
            store.listen("u1")
        assert store.open_query_count == 0

    def test_store_close_closes_client(self, store, client):
        client.collection.return_value.on_snapshot.return_value = MagicMock()
        handle = store.listen("u1")
        store.close()
        assert handle.closed
        client.close.assert_called_once()
