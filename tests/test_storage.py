"""Tests for the LiveQuery handle and the in-memory store."""

import threading

import pytest

from subtrack.models.subscription import BillingCycle, SubscriptionDraft
from subtrack.services.storage import (
    InMemorySubscriptionStore,
    LiveQuery,
    NotFoundError,
    WriteFailureError,
)
from tests.factories import make_subscription


class TestLiveQuery:
    """Tests for snapshot delivery and teardown."""

    def test_latest_is_none_before_first_emission(self):
        handle = LiveQuery("u1", "path")
        assert handle.latest() is None

    def test_publish_replaces_snapshot(self):
        handle = LiveQuery("u1", "path")
        handle.publish([make_subscription("a", "Netflix", 500)])
        handle.publish([])
        snapshot = handle.latest()
        assert snapshot.is_empty
        assert snapshot.sequence == 2

    def test_next_times_out_without_new_snapshot(self):
        handle = LiveQuery("u1", "path")
        handle.publish([])
        handle.latest()
        assert handle.next(timeout=0.01) is None

    def test_next_receives_snapshot_from_other_thread(self):
        handle = LiveQuery("u1", "path")
        sub = make_subscription("a", "Netflix", 500)
        timer = threading.Timer(0.05, handle.publish, args=([sub],))
        timer.start()
        snapshot = handle.next(timeout=2)
        timer.join()
        assert snapshot is not None
        assert snapshot.subscriptions == [sub]

    def test_on_snapshot_fires_with_current_snapshot(self):
        handle = LiveQuery("u1", "path")
        handle.publish([make_subscription("a", "Netflix", 500)])
        received = []
        handle.on_snapshot(received.append)
        handle.publish([])
        assert [len(s.subscriptions) for s in received] == [1, 0]

    def test_close_is_idempotent_and_detaches_once(self):
        calls = []
        handle = LiveQuery("u1", "path", detach=lambda: calls.append("detach"))
        handle.close()
        handle.close()
        assert handle.closed
        assert calls == ["detach"]

    def test_publish_after_close_is_ignored(self):
        handle = LiveQuery("u1", "path")
        handle.publish([])
        handle.close()
        assert handle.publish([make_subscription("a", "Netflix", 500)]) is None
        assert handle.latest().is_empty

    def test_set_detach_after_close_detaches_immediately(self):
        calls = []
        handle = LiveQuery("u1", "path")
        handle.close()
        handle.set_detach(lambda: calls.append("detach"))
        assert calls == ["detach"]

    def test_fail_records_error_until_next_snapshot(self):
        handle = LiveQuery("u1", "path")
        errors = []
        handle.on_error(errors.append)
        handle.fail(RuntimeError("permission denied"))
        assert isinstance(handle.error, RuntimeError)
        assert len(errors) == 1
        handle.publish([])
        assert handle.error is None

    def test_context_manager_closes(self):
        with LiveQuery("u1", "path") as handle:
            pass
        assert handle.closed


class TestInMemoryStore:
    """Tests for the in-memory document store."""

    @pytest.fixture
    def store(self):
        store = InMemorySubscriptionStore("test-app")
        yield store
        store.close()

    def test_collection_path(self, store):
        assert store.collection_path("u1") == "artifacts/test-app/users/u1/subscriptions"

    def test_listen_emits_initial_empty_snapshot(self, store):
        handle = store.listen("u1")
        assert handle.latest().is_empty
        assert store.listener_count("u1") == 1

    @pytest.mark.asyncio
    async def test_writes_emit_full_snapshots(self, store):
        handle = store.listen("u1")
        first = await store.create("u1", SubscriptionDraft(name="Netflix", cost=500))
        await store.create(
            "u1", SubscriptionDraft(name="Prime", cost=1499, cycle=BillingCycle.YEARLY)
        )
        names = [s.name for s in handle.latest().subscriptions]
        assert names == ["Netflix", "Prime"]

        await store.delete("u1", first.id)
        assert [s.name for s in handle.latest().subscriptions] == ["Prime"]

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store):
        other = store.listen("u2")
        await store.create("u1", SubscriptionDraft(name="Netflix", cost=500))
        assert other.latest().is_empty

    @pytest.mark.asyncio
    async def test_update_keeps_created_at(self, store):
        created = await store.create("u1", SubscriptionDraft(name="Netflix", cost=500))
        await store.update("u1", created.id, SubscriptionDraft(name="Netflix HD", cost=649))
        updated = store.get("u1", created.id)
        assert updated.name == "Netflix HD"
        assert updated.cost == 649
        assert updated.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.update("u1", "missing", SubscriptionDraft(name="X", cost=1))

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, store):
        await store.delete("u1", "missing")
        assert store.get("u1", "missing") is None

    @pytest.mark.asyncio
    async def test_fail_next_write(self, store):
        store.fail_next_write = RuntimeError("offline")
        with pytest.raises(WriteFailureError) as exc_info:
            await store.delete("u1", "any")
        assert exc_info.value.operation == "delete"
        await store.delete("u1", "any")

    def test_closed_handle_stops_listening(self, store):
        handle = store.listen("u1")
        handle.close()
        assert store.listener_count("u1") == 0
        assert store.open_query_count == 0

    def test_store_close_closes_every_handle(self, store):
        handles = [store.listen("u1"), store.listen("u2")]
        store.close()
        assert all(h.closed for h in handles)
        assert store.open_query_count == 0
        assert store.listener_count("u1") == 0
