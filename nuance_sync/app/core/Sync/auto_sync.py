# nuance_sync/app/core/Sync/auto_sync.py
import logging
from typing import Optional

from .core import SyncManager
from .models import AnalysisRecord, SyncErrorCode, SyncResult

logger = logging.getLogger(__name__)


class AutoSyncTrigger:
    """
    Policy wrapper that pushes after local changes when the user has opted in.

    Only ever pushes. Bidirectional sync can queue conflicts, and that review
    workflow must only start from an explicit user action.
    """

    def __init__(self, manager: SyncManager):
        if not isinstance(manager, SyncManager): raise TypeError("manager must be a SyncManager object")
        self.manager = manager

    def _run_push(self, reason: str) -> SyncResult:
        logger.info(f"Auto-sync ({reason}): pushing local history.")
        result = self.manager.push()
        if result.success or result.error_code is SyncErrorCode.IN_PROGRESS:
            return result
        return SyncResult.failure(SyncErrorCode.REQUEST_FAILED, result.error_detail or result.error_code.value)

    def on_record_created(self, record: Optional[AnalysisRecord] = None) -> SyncResult:
        """Called once for every newly created local record."""
        settings = self.manager.store.get_sync_settings()
        if not settings.has_token:
            return SyncResult.failure(SyncErrorCode.TOKEN_MISSING, skipped=True)
        if not settings.sync_on_analyze:
            return SyncResult.failure(SyncErrorCode.AUTO_SYNC_DISABLED, skipped=True)
        return self._run_push(f"record {record.id} created" if record else "record created")

    def on_interval(self) -> SyncResult:
        """Called by a periodic scheduler; gated on the auto_sync flag."""
        settings = self.manager.store.get_sync_settings()
        if not settings.has_token:
            return SyncResult.failure(SyncErrorCode.TOKEN_MISSING, skipped=True)
        if not settings.auto_sync:
            return SyncResult.failure(SyncErrorCode.AUTO_SYNC_DISABLED, skipped=True)
        return self._run_push("interval")
