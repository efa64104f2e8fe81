# test_conflict_resolver.py
# Description: Unit tests for resolving queued conflicts one at a time or in a batch.
#
# Imports
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from nuance_sync.app.core.Sync import ConflictPreference, ConflictRecord, ConflictResolver, SyncErrorCode
from nuance_sync.app.core.Sync.exceptions import RemoteServiceError
from conftest import make_record
#
#######################################################################################################################
#
# Functions:


@pytest.fixture
def resolver(manager):
    return ConflictResolver(manager)


def queue_conflict(store, local, remote):
    store.add_conflict(ConflictRecord.between(local, remote))


class TestResolveOne:

    def test_remote_wins_replaces_local_and_publishes(self, resolver, store, transport, bound):
        local_l = make_record("L", "https://z", 200)
        remote_r = make_record("R", "https://z", 300)
        keep = make_record("K", "https://k", 250)
        store.save_history([keep, local_l])
        queue_conflict(store, local_l, remote_r)

        result = resolver.resolve_one("L", "remote")

        assert result.success
        history = store.get_history()
        assert [r.id for r in history if r.url == "https://z"] == ["R"]
        assert [r.id for r in history] == ["R", "K"]  # newest first
        assert store.get_conflict_queue() == []
        assert transport.records_in(bound) == history
        assert result.pushed == 2
        assert store.get_sync_settings().last_sync_time > 0

    def test_local_wins_keeps_local(self, resolver, store, transport, bound):
        local_l = make_record("L", "https://z", 200)
        store.save_history([local_l])
        queue_conflict(store, local_l, make_record("R", "https://z", 300))

        result = resolver.resolve_one("L", ConflictPreference.LOCAL)

        assert result.success
        assert [r.id for r in store.get_history()] == ["L"]
        assert [r.id for r in transport.records_in(bound)] == ["L"]

    def test_only_the_resolved_entry_leaves_the_queue(self, resolver, store, bound):
        a, b = make_record("A", "https://a", 1), make_record("B", "https://b", 2)
        store.save_history([b, a])
        queue_conflict(store, a, make_record("RA", "https://a", 3))
        queue_conflict(store, b, make_record("RB", "https://b", 4))

        resolver.resolve_one("A", "remote")

        assert [c.local.id for c in store.get_conflict_queue()] == ["B"]

    def test_absent_conflict_is_noop(self, resolver, store, transport, bound):
        store.save_history([make_record("1", "https://x")])
        result = resolver.resolve_one("missing", "local")
        assert result.success
        assert result.pushed is None
        assert "update_blob" not in transport.call_names()

    def test_unbound_store_resolves_locally(self, resolver, store, transport, with_token):
        local_l = make_record("L", "https://z", 200)
        store.save_history([local_l])
        queue_conflict(store, local_l, make_record("R", "https://z", 300))

        result = resolver.resolve_one("L", "remote")

        assert result.success
        assert [r.id for r in store.get_history()] == ["R"]
        assert transport.calls == []

    def test_publish_failure_is_reported(self, resolver, store, transport, bound):
        local_l = make_record("L", "https://z", 200)
        store.save_history([local_l])
        queue_conflict(store, local_l, make_record("R", "https://z", 300))
        transport.fail_on["update_blob"] = RemoteServiceError("Failed to update blob", status_code=500)

        result = resolver.resolve_one("L", "remote")

        assert not result.success
        assert result.error_code is SyncErrorCode.REQUEST_FAILED
        # The local resolution stands; the push can be retried
        assert [r.id for r in store.get_history()] == ["R"]

    def test_bad_preference_is_a_failure_result(self, resolver, store, transport, bound):
        local_l = make_record("L", "https://z", 200)
        store.save_history([local_l])
        queue_conflict(store, local_l, make_record("R", "https://z", 300))

        result = resolver.resolve_one("L", "both")

        assert not result.success
        assert result.error_code is SyncErrorCode.REQUEST_FAILED
        assert "both" in result.error_detail
        assert [r.id for r in store.get_history()] == ["L"]
        assert len(store.get_conflict_queue()) == 1
        assert transport.call_names() == []


class TestResolveAll:

    def test_batch_resolution_writes_once(self, resolver, store, transport, bound):
        a, b = make_record("A", "https://a", 10), make_record("B", "https://b", 20)
        other = make_record("C", "https://c", 15)
        store.save_history([b, other, a])
        queue_conflict(store, a, make_record("RA", "https://a", 30))
        queue_conflict(store, b, make_record("RB", "https://b", 5))

        result = resolver.resolve_all("remote")

        assert result.success
        assert [r.id for r in store.get_history()] == ["RA", "C", "RB"]
        assert store.get_conflict_queue() == []
        assert transport.call_names().count("update_blob") == 1
        assert result.pushed == 3

    def test_local_preference(self, resolver, store, transport, bound):
        a = make_record("A", "https://a", 10)
        store.save_history([a])
        queue_conflict(store, a, make_record("RA", "https://a", 30))

        resolver.resolve_all(ConflictPreference.LOCAL)

        assert [r.id for r in store.get_history()] == ["A"]

    def test_empty_queue_is_noop(self, resolver, store, transport, bound):
        store.save_history([make_record("1", "https://x")])
        result = resolver.resolve_all("remote")
        assert result.success
        assert result.pushed is None
        assert transport.call_names() == []
        assert store.get_sync_settings().last_sync_time == 0

    def test_bad_preference_is_a_failure_result(self, resolver, store):
        result = resolver.resolve_all(None)
        assert not result.success
        assert result.error_code is SyncErrorCode.REQUEST_FAILED

    def test_shared_remote_winner_kept_once(self, resolver, store, bound):
        # Two local ids for one url both conflict with the same remote record
        l1, l2 = make_record("L1", "https://z", 1), make_record("L2", "https://z", 2)
        store.save_history([l2, l1])
        remote_r = make_record("R", "https://z", 3)
        queue_conflict(store, l1, remote_r)
        queue_conflict(store, l2, remote_r)

        resolver.resolve_all("remote")

        assert [r.id for r in store.get_history()] == ["R"]


def test_resolver_requires_manager():
    with pytest.raises(TypeError):
        ConflictResolver(object())

#
# End of test_conflict_resolver.py
#######################################################################################################################
