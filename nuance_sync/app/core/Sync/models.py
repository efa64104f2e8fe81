# nuance_sync/app/core/Sync/models.py
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)

def format_sync_time(epoch_ms: int) -> str:
    """Renders an epoch-ms timestamp for display, or '' if it was never set."""
    if not epoch_ms or epoch_ms <= 0:
        return ""
    try:
        return datetime.fromtimestamp(epoch_ms / 1000).strftime('%Y-%m-%d %H:%M:%S')
    except (OverflowError, OSError, ValueError):
        return ""


def epoch_ms_or_default(value: Any, default: int = 0) -> int:
    """Coerces a stored/wire timestamp to int ms. Booleans, non-numbers, NaN and infinities give `default`."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return int(value)


class SyncErrorCode(str, Enum):
    TOKEN_MISSING = "SYNC_TOKEN_MISSING"
    GIST_MISSING = "SYNC_GIST_MISSING"
    AUTO_SYNC_DISABLED = "SYNC_AUTO_SYNC_DISABLED"
    REQUEST_FAILED = "SYNC_REQUEST_FAILED"
    AUTH_INVALID = "SYNC_AUTH_INVALID"
    IN_PROGRESS = "SYNC_IN_PROGRESS"


class ConflictPreference(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass
class AnalysisRecord:
    id: str
    title: str
    url: str
    timestamp: int # epoch ms
    analysis: Dict[str, Any] = field(default_factory=dict) # Opaque to the sync engine

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "timestamp": self.timestamp,
            "analysis": self.analysis,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisRecord":
        """Builds a record from its stored/wire dict. Raises ValueError on missing identity fields."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected a dict for AnalysisRecord, got {type(data).__name__}")
        record_id = data.get("id")
        url = data.get("url")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError(f"AnalysisRecord is missing a string 'id': {record_id!r}")
        if not isinstance(url, str):
            raise ValueError(f"AnalysisRecord {record_id} is missing a string 'url'")
        analysis = data.get("analysis")
        return cls(
            id=record_id,
            title=data.get("title") if isinstance(data.get("title"), str) else "",
            url=url,
            timestamp=epoch_ms_or_default(data.get("timestamp")),
            analysis=analysis if isinstance(analysis, dict) else {},
        )


@dataclass
class SyncSettings:
    remote_token: str = field(default="", repr=False) # Secret; never logged
    blob_id: Optional[str] = None
    last_sync_time: int = 0
    auto_sync: bool = True
    sync_on_analyze: bool = True

    # Python attribute -> persisted key
    FIELD_KEYS = {
        "remote_token": "remoteToken",
        "blob_id": "blobId",
        "last_sync_time": "lastSyncTime",
        "auto_sync": "autoSync",
        "sync_on_analyze": "syncOnAnalyze",
    }

    @property
    def has_token(self) -> bool:
        return bool(self.remote_token)

    @property
    def is_bound(self) -> bool:
        return self.blob_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in self.FIELD_KEYS.items()}

    @classmethod
    def from_dict(cls, raw: Any) -> "SyncSettings":
        """Lenient parse: anything of the wrong type falls back to its default."""
        if not isinstance(raw, dict):
            return cls()
        return cls(
            remote_token=raw.get("remoteToken") if isinstance(raw.get("remoteToken"), str) else "",
            blob_id=raw.get("blobId") if isinstance(raw.get("blobId"), str) else None,
            last_sync_time=epoch_ms_or_default(raw.get("lastSyncTime")),
            auto_sync=raw.get("autoSync") is not False,
            sync_on_analyze=raw.get("syncOnAnalyze") is not False,
        )


@dataclass
class ConflictRecord:
    local: AnalysisRecord
    remote: AnalysisRecord
    local_timestamp: int
    remote_timestamp: int

    @classmethod
    def between(cls, local: AnalysisRecord, remote: AnalysisRecord) -> "ConflictRecord":
        return cls(local=local, remote=remote,
                   local_timestamp=local.timestamp, remote_timestamp=remote.timestamp)

    def winner(self, preference: ConflictPreference) -> AnalysisRecord:
        return self.local if ConflictPreference(preference) is ConflictPreference.LOCAL else self.remote

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local": self.local.to_dict(),
            "remote": self.remote.to_dict(),
            "localTimestamp": self.local_timestamp,
            "remoteTimestamp": self.remote_timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConflictRecord":
        if not isinstance(data, dict):
            raise ValueError(f"Expected a dict for ConflictRecord, got {type(data).__name__}")
        local = AnalysisRecord.from_dict(data.get("local"))
        remote = AnalysisRecord.from_dict(data.get("remote"))
        return cls(
            local=local,
            remote=remote,
            local_timestamp=epoch_ms_or_default(data.get("localTimestamp"), local.timestamp),
            remote_timestamp=epoch_ms_or_default(data.get("remoteTimestamp"), remote.timestamp),
        )


@dataclass
class SyncResult:
    success: bool
    error_code: Optional[SyncErrorCode] = None
    error_detail: Optional[str] = None
    pushed: Optional[int] = None
    pulled: Optional[int] = None
    conflicts: Optional[List[ConflictRecord]] = None
    skipped: bool = False # Non-fatal policy skip; callers should not show an error

    @classmethod
    def failure(cls, code: SyncErrorCode, detail: Optional[str] = None, skipped: bool = False) -> "SyncResult":
        return cls(success=False, error_code=code, error_detail=detail, skipped=skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error_code": self.error_code.value if self.error_code else None,
            "error_detail": self.error_detail,
            "pushed": self.pushed,
            "pulled": self.pulled,
            "conflicts": [c.to_dict() for c in self.conflicts] if self.conflicts is not None else None,
            "skipped": self.skipped,
        }


@dataclass
class SyncStatusInfo:
    status: str # 'idle', 'syncing', 'error', 'conflict'
    message: str
    conflicts_count: int
    last_sync_text: str
