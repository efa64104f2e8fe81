# nuance_sync/app/core/Sync/__init__.py
from .core import SyncManager, SyncInProgress, detect_conflicts, remote_only_records
from .models import (
    AnalysisRecord,
    ConflictPreference,
    ConflictRecord,
    SyncErrorCode,
    SyncResult,
    SyncSettings,
    SyncStatusInfo,
)
from .exceptions import SyncError, TransportError, AuthError, RemoteServiceError, StateError
from .transport import BlobTransport, GistBlobTransport
from .conflict import ConflictResolver
from .auto_sync import AutoSyncTrigger
from .state import KeyValueStore, InMemoryKeyValueStore, JsonFileKeyValueStore, RecordStore

__all__ = [
    "SyncManager",
    "SyncInProgress",
    "detect_conflicts",
    "remote_only_records",
    "AnalysisRecord",
    "ConflictPreference",
    "ConflictRecord",
    "SyncErrorCode",
    "SyncResult",
    "SyncSettings",
    "SyncStatusInfo",
    "SyncError",
    "TransportError",
    "AuthError",
    "RemoteServiceError",
    "StateError",
    "BlobTransport",
    "GistBlobTransport",
    "ConflictResolver",
    "AutoSyncTrigger",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "RecordStore",
]
