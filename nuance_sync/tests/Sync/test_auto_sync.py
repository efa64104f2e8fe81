# test_auto_sync.py
# Description: Unit tests for the auto-sync policy that pushes after local changes.
#
# Imports
from unittest.mock import MagicMock
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from nuance_sync.app.core.Sync import AutoSyncTrigger, SyncErrorCode, SyncManager, SyncResult, TransportError
from conftest import make_record
#
#######################################################################################################################
#
# Functions:


@pytest.fixture
def trigger(manager):
    return AutoSyncTrigger(manager)


class TestOnRecordCreated:

    def test_token_missing_is_a_skip(self, trigger, transport):
        result = trigger.on_record_created(make_record("1", "https://x"))
        assert not result.success
        assert result.skipped
        assert result.error_code is SyncErrorCode.TOKEN_MISSING
        assert transport.calls == []

    def test_disabled_is_a_skip(self, trigger, store, transport, bound):
        store.set_sync_settings(sync_on_analyze=False)
        result = trigger.on_record_created()
        assert result.skipped
        assert result.error_code is SyncErrorCode.AUTO_SYNC_DISABLED
        assert "update_blob" not in transport.call_names()

    def test_token_missing_wins_over_disabled(self, trigger, store):
        store.set_sync_settings(sync_on_analyze=False)
        assert trigger.on_record_created().error_code is SyncErrorCode.TOKEN_MISSING

    def test_pushes_new_record(self, trigger, store, transport, bound):
        record = store.add_record("T", "https://x", {"idioms": []})
        result = trigger.on_record_created(record)
        assert result.success
        assert result.pushed == 1
        assert [r.id for r in transport.records_in(bound)] == [record.id]

    def test_never_enters_conflict_workflow(self, trigger, store, transport, bound):
        # Remote has a record for the same url under another id; a push simply overwrites it
        transport.blobs[bound] = [make_record("R", "https://x").to_dict()]
        record = store.add_record("T", "https://x", {})

        result = trigger.on_record_created(record)

        assert result.success
        assert result.conflicts is None
        assert store.get_conflict_queue() == []
        assert "read_blob" not in transport.call_names()

    def test_unbound_push_binds(self, trigger, store, transport, with_token):
        store.add_record("T", "https://x", {})
        result = trigger.on_record_created()
        assert result.success
        assert store.get_sync_settings().is_bound

    def test_push_failure_is_generic_request_failure(self, trigger, store, transport, bound):
        transport.fail_on["update_blob"] = TransportError("offline")
        result = trigger.on_record_created()
        assert not result.success
        assert not result.skipped
        assert result.error_code is SyncErrorCode.REQUEST_FAILED
        assert result.error_detail == "offline"

    def test_in_progress_passed_through(self, store, transport, bound):
        manager = SyncManager(store, transport)
        manager.push = MagicMock(return_value=SyncResult.failure(SyncErrorCode.IN_PROGRESS, "busy"))
        result = AutoSyncTrigger(manager).on_record_created()
        assert result.error_code is SyncErrorCode.IN_PROGRESS


class TestOnInterval:

    def test_gated_on_auto_sync(self, trigger, store, bound):
        store.set_sync_settings(auto_sync=False)
        result = trigger.on_interval()
        assert result.skipped
        assert result.error_code is SyncErrorCode.AUTO_SYNC_DISABLED

    def test_ignores_sync_on_analyze(self, trigger, store, transport, bound):
        store.set_sync_settings(sync_on_analyze=False)
        store.add_record("T", "https://x", {})
        result = trigger.on_interval()
        assert result.success
        assert transport.call_names().count("update_blob") == 1

    def test_token_missing(self, trigger):
        assert trigger.on_interval().error_code is SyncErrorCode.TOKEN_MISSING


def test_trigger_requires_manager():
    with pytest.raises(TypeError):
        AutoSyncTrigger("manager")

#
# End of test_auto_sync.py
#######################################################################################################################
