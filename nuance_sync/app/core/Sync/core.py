# nuance_sync/app/core/Sync/core.py
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from .exceptions import StateError, SyncError, TransportError
from .models import (
    AnalysisRecord,
    ConflictRecord,
    SyncErrorCode,
    SyncResult,
    SyncSettings,
    SyncStatusInfo,
    format_sync_time,
    now_ms,
)
from .state import RecordStore
from .transport import BlobTransport

logger = logging.getLogger(__name__)


class SyncInProgress(SyncError):
    """Raised internally when the store's sync lock could not be acquired in time."""
    pass


def remote_only_records(local: List[AnalysisRecord], remote: List[AnalysisRecord]) -> List[AnalysisRecord]:
    """Remote records whose url is absent locally, first occurrence per url."""
    seen_urls = {r.url for r in local}
    result = []
    for record in remote:
        if record.url not in seen_urls:
            seen_urls.add(record.url)
            result.append(record)
    return result

def detect_conflicts(local: List[AnalysisRecord], remote: List[AnalysisRecord]) -> List[ConflictRecord]:
    """One conflict per local record whose url is held remotely under a different id."""
    remote_by_url = {}
    for record in remote:
        remote_by_url.setdefault(record.url, record)
    conflicts = []
    for local_record in local:
        remote_record = remote_by_url.get(local_record.url)
        if remote_record is not None and remote_record.id != local_record.id:
            conflicts.append(ConflictRecord.between(local_record, remote_record))
    return conflicts


class SyncManager:
    """
    Orchestrates synchronization between the local record store and the remote blob.

    Every public operation returns a SyncResult; nothing raises across this boundary.
    The store is bound to a remote blob once `blob_id` is set in its settings, and the
    only transition from unbound to bound happens in `sync_with_lookup_or_create`.

    Pushes are full-snapshot overwrites of the remote. A push is not merge-aware: records
    another device published after this store's last pull are lost (last writer wins).
    """

    def __init__(self,
                 store: RecordStore,
                 transport: BlobTransport,
                 lock_timeout: float = 30.0):
        """
        Initializes the SyncManager.

        Args:
            store: The local record store; its lock serializes sync operations.
            transport: An object implementing the BlobTransport interface.
            lock_timeout: Seconds to wait for an in-flight sync on the same store. Negative waits forever.
        """
        if not isinstance(store, RecordStore): raise TypeError("store must be a RecordStore object")
        if not isinstance(transport, BlobTransport): raise TypeError("transport must be a BlobTransport object")

        self.store = store
        self.transport = transport
        self.lock_timeout = lock_timeout
        self.last_error: Optional[str] = None
        self._in_flight = 0

        logger.info("SyncManager initialized.")

    # --- Locking & error boundary ---

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Holds the store's sync lock. Raises SyncInProgress if it can't be had within lock_timeout."""
        timeout = -1 if self.lock_timeout is None or self.lock_timeout < 0 else self.lock_timeout
        if not self.store.lock.acquire(timeout=timeout):
            logger.warning("Synchronization is already in progress on this store.")
            raise SyncInProgress("Another sync operation is already in progress")
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1
            self.store.lock.release()

    def _guarded(self, operation: str, func) -> SyncResult:
        """Runs `func` under the store lock and converts every failure into a SyncResult."""
        logger.info(f"Starting sync operation: {operation}")
        try:
            with self.exclusive():
                result = func()
        except SyncInProgress as e:
            return SyncResult.failure(SyncErrorCode.IN_PROGRESS, str(e))
        except (TransportError, StateError) as e:
            logger.error(f"Sync operation '{operation}' failed: {type(e).__name__} - {e}")
            self.last_error = str(e)
            return SyncResult.failure(SyncErrorCode.REQUEST_FAILED, str(e))
        except Exception as e:
            logger.critical(f"Unexpected error during sync operation '{operation}': {e}", exc_info=True)
            self.last_error = str(e) or type(e).__name__
            return SyncResult.failure(SyncErrorCode.REQUEST_FAILED, self.last_error)

        if result.success:
            self.last_error = None
        logger.info(f"Sync operation '{operation}' finished: success={result.success}, "
                    f"pushed={result.pushed}, pulled={result.pulled}, "
                    f"conflicts={len(result.conflicts) if result.conflicts else 0}")
        return result

    @staticmethod
    def _require_bound(settings: SyncSettings) -> Optional[SyncResult]:
        if not settings.has_token:
            return SyncResult.failure(SyncErrorCode.TOKEN_MISSING)
        if not settings.is_bound:
            return SyncResult.failure(SyncErrorCode.GIST_MISSING)
        return None

    def _merge_remote(self, local: List[AnalysisRecord], remote: List[AnalysisRecord]) -> Tuple[List[AnalysisRecord], int]:
        """Appends remote-only records to `local` and persists; never overwrites or removes local records."""
        new_from_remote = remote_only_records(local, remote)
        merged = local + new_from_remote
        self.store.save_history(merged)
        return merged, len(new_from_remote)

    # --- Bootstrap ---

    def sync_with_lookup_or_create(self) -> SyncResult:
        """Binds this store to a remote blob, adopting an existing one or creating it."""
        return self._guarded("lookup_or_create", self._lookup_or_create)

    def _lookup_or_create(self) -> SyncResult:
        settings = self.store.get_sync_settings()
        if not settings.has_token:
            return SyncResult.failure(SyncErrorCode.TOKEN_MISSING)

        if settings.is_bound:
            return self._push_bound(settings)

        local = self.store.get_history()
        existing_blob_id = self.transport.find_owned_blob(settings.remote_token)

        if existing_blob_id:
            remote = self.transport.read_blob(settings.remote_token, existing_blob_id)
            # First contact: local copies win silently on url collisions, no conflicts are queued
            _, pulled = self._merge_remote(local, remote)
            self.store.set_sync_settings(blob_id=existing_blob_id, last_sync_time=now_ms())
            self.store.clear_conflict_queue()
            logger.info(f"Bound to existing blob {existing_blob_id}; pulled {pulled} records.")
            return SyncResult(success=True, pushed=len(local), pulled=pulled)

        blob_id = self.transport.create_blob(settings.remote_token, local)
        self.store.set_sync_settings(blob_id=blob_id, last_sync_time=now_ms())
        self.store.clear_conflict_queue()
        logger.info(f"Bound to newly created blob {blob_id}.")
        return SyncResult(success=True, pushed=len(local))

    # --- Push ---

    def push(self) -> SyncResult:
        """Overwrites the remote with the full local snapshot, bootstrapping first if unbound."""
        return self._guarded("push", self._push)

    def _push(self) -> SyncResult:
        settings = self.store.get_sync_settings()
        if not settings.has_token:
            return SyncResult.failure(SyncErrorCode.TOKEN_MISSING)
        if not settings.is_bound:
            return self._lookup_or_create()
        return self._push_bound(settings)

    def _push_bound(self, settings: SyncSettings) -> SyncResult:
        local = self.store.get_history()
        self.transport.update_blob(settings.remote_token, settings.blob_id, local)
        self.store.set_sync_settings(last_sync_time=now_ms())
        self.store.clear_conflict_queue()
        return SyncResult(success=True, pushed=len(local))

    # --- Pull ---

    def pull(self) -> SyncResult:
        """Adds remote records whose url is unknown locally. Existing local records are never touched."""
        return self._guarded("pull", self._pull)

    def _pull(self) -> SyncResult:
        settings = self.store.get_sync_settings()
        missing = self._require_bound(settings)
        if missing:
            return missing

        remote = self.transport.read_blob(settings.remote_token, settings.blob_id)
        local = self.store.get_history()
        _, pulled = self._merge_remote(local, remote)
        self.store.set_sync_settings(last_sync_time=now_ms())
        return SyncResult(success=True, pulled=pulled)

    # --- Bidirectional ---

    def sync_bidirectional(self) -> SyncResult:
        """
        Pull-then-push, unless some url is held under different ids locally and remotely.
        In that case the conflicts are queued and nothing else changes.
        """
        return self._guarded("bidirectional", self._bidirectional)

    def _bidirectional(self) -> SyncResult:
        settings = self.store.get_sync_settings()
        missing = self._require_bound(settings)
        if missing:
            return missing

        local = self.store.get_history()
        remote = self.transport.read_blob(settings.remote_token, settings.blob_id)

        conflicts = detect_conflicts(local, remote)
        if conflicts:
            self.store.set_conflict_queue(conflicts)
            logger.warning(f"Detected {len(conflicts)} conflicts; queued for review. No push or pull performed.")
            return SyncResult(success=True, pushed=0, pulled=0, conflicts=conflicts)

        merged, pulled = self._merge_remote(local, remote)
        self.transport.update_blob(settings.remote_token, settings.blob_id, merged)
        self.store.set_sync_settings(last_sync_time=now_ms())
        return SyncResult(success=True, pushed=len(merged), pulled=pulled)

    # --- Token & status helpers ---

    def validate_token(self, token: Optional[str] = None) -> SyncResult:
        """Checks `token` (or the stored one) against the remote identity endpoint."""
        if token is None:
            token = self.store.get_sync_settings().remote_token
        if not token:
            return SyncResult.failure(SyncErrorCode.TOKEN_MISSING)
        if self.transport.validate_token(token):
            return SyncResult(success=True)
        return SyncResult.failure(SyncErrorCode.AUTH_INVALID, "The remote service rejected the token")

    def get_raw_url(self) -> Optional[str]:
        settings = self.store.get_sync_settings()
        if not settings.has_token or not settings.is_bound:
            return None
        return self.transport.get_raw_url(settings.remote_token, settings.blob_id)

    def get_sync_status_info(self) -> SyncStatusInfo:
        settings = self.store.get_sync_settings()
        conflicts_count = len(self.store.get_conflict_queue())

        status = 'idle'
        if not settings.has_token:
            message = 'Not configured'
        elif self._in_flight:
            status = 'syncing'
            message = 'Syncing'
        elif self.last_error:
            status = 'error'
            message = self.last_error
        elif conflicts_count > 0:
            status = 'conflict'
            message = f"{conflicts_count} conflicts"
        elif settings.last_sync_time > 0:
            message = 'Synced'
        else:
            message = 'Ready to sync'

        return SyncStatusInfo(
            status=status,
            message=message,
            conflicts_count=conflicts_count,
            last_sync_text=format_sync_time(settings.last_sync_time),
        )
