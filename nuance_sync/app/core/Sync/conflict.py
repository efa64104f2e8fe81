# nuance_sync/app/core/Sync/conflict.py
import logging
from typing import List, Union

from .core import SyncManager
from .models import AnalysisRecord, ConflictPreference, ConflictRecord, SyncErrorCode, SyncResult, now_ms

logger = logging.getLogger(__name__)


class ConflictResolver:
    """
    Applies the user's choice (local wins / remote wins) to queued conflicts,
    rewrites the local history and republishes it to the remote when bound.
    """

    def __init__(self, manager: SyncManager):
        if not isinstance(manager, SyncManager): raise TypeError("manager must be a SyncManager object")
        self.manager = manager
        self.store = manager.store

    @staticmethod
    def _parse_preference(preference) -> Union[ConflictPreference, SyncResult]:
        try:
            return ConflictPreference(preference)
        except ValueError:
            logger.warning(f"Unknown conflict preference: {preference!r}")
            return SyncResult.failure(SyncErrorCode.REQUEST_FAILED, f"Unknown conflict preference: {preference!r}")

    def _apply_winners(self, local_ids: List[str], winners: List[AnalysisRecord]) -> List[AnalysisRecord]:
        """Swaps the given local ids for the winners, re-sorts newest first and persists."""
        ids_to_remove = set(local_ids) | {w.id for w in winners}
        updated = [r for r in self.store.get_history() if r.id not in ids_to_remove]
        for winner in winners:
            if winner.id not in {r.id for r in updated}:
                updated.append(winner)
        updated.sort(key=lambda r: r.timestamp, reverse=True)
        self.store.save_history(updated)
        return updated

    def _publish(self, records: List[AnalysisRecord]) -> SyncResult:
        settings = self.store.get_sync_settings()
        if not (settings.is_bound and settings.has_token):
            logger.info("Store is not bound to a remote blob; resolution kept local only.")
            return SyncResult(success=True)
        self.manager.transport.update_blob(settings.remote_token, settings.blob_id, records)
        self.store.set_sync_settings(last_sync_time=now_ms())
        return SyncResult(success=True, pushed=len(records))

    def resolve_one(self, record_id: str, preference: Union[ConflictPreference, str]) -> SyncResult:
        """Resolves the queued conflict whose local record has `record_id`. No-op if there is none."""
        choice = self._parse_preference(preference)
        if isinstance(choice, SyncResult):
            return choice
        return self.manager._guarded("resolve_one", lambda: self._resolve_one(record_id, choice))

    def _resolve_one(self, record_id: str, preference: ConflictPreference) -> SyncResult:
        queue = self.store.get_conflict_queue()
        conflict = next((c for c in queue if c.local.id == record_id), None)
        if conflict is None:
            logger.debug(f"No queued conflict for local record {record_id}; nothing to resolve.")
            return SyncResult(success=True)

        winner = conflict.winner(preference)
        logger.info(f"Resolving conflict for {conflict.local.url}: keeping {preference.value} record {winner.id}.")
        updated = self._apply_winners([record_id], [winner])
        self.store.set_conflict_queue([c for c in queue if c.local.id != record_id])
        return self._publish(updated)

    def resolve_all(self, preference: Union[ConflictPreference, str]) -> SyncResult:
        """Resolves every queued conflict the same way, with a single save and a single remote write."""
        choice = self._parse_preference(preference)
        if isinstance(choice, SyncResult):
            return choice
        return self.manager._guarded("resolve_all", lambda: self._resolve_all(choice))

    def _resolve_all(self, preference: ConflictPreference) -> SyncResult:
        queue: List[ConflictRecord] = self.store.get_conflict_queue()
        if not queue:
            return SyncResult(success=True)

        logger.info(f"Resolving {len(queue)} conflicts with preference '{preference.value}'.")
        updated = self._apply_winners(
            [c.local.id for c in queue],
            [c.winner(preference) for c in queue],
        )
        self.store.clear_conflict_queue()
        return self._publish(updated)
