# nuance_sync/app/core/Sync/state.py
import copy
import json
import os
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .exceptions import StateError
from .models import AnalysisRecord, ConflictRecord, SyncSettings, now_ms

logger = logging.getLogger(__name__)
DEFAULT_STATE_FILE = ".nuance_sync_state.json"

SYNC_SETTINGS_KEY = "nuance_sync_settings"
ANALYSIS_HISTORY_KEY = "nuance_analysis_history"
CONFLICT_QUEUE_KEY = "nuance_conflict_queue"


class KeyValueStore(ABC):
    """Minimal get/set/remove storage the record store is built on."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out so callers can't alias stored state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._store: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._store:
            return default
        return copy.deepcopy(self._store[key])

    def set(self, key: str, value: Any) -> None:
        self._store[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        if key in self._store:
            del self._store[key]


class JsonFileKeyValueStore(KeyValueStore):
    """Manages persistent state as a single JSON object in a file."""

    def __init__(self, state_file_path: str = DEFAULT_STATE_FILE):
        self.state_file_path = str(state_file_path)
        logger.info(f"JSON key-value store initialized with file: {self.state_file_path}")

    def _load_state(self) -> Dict:
        """Loads state from the JSON file."""
        if not os.path.exists(self.state_file_path):
            logger.debug(f"State file not found: {self.state_file_path}. Returning empty state.")
            return {}
        try:
            with open(self.state_file_path, 'r', encoding='utf-8') as f:
                state = json.load(f)
        except (IOError, json.JSONDecodeError) as e:
            logger.error(f"Error loading state from {self.state_file_path}: {e}", exc_info=True)
            raise StateError(f"Failed to load state: {e}") from e
        if not isinstance(state, dict):
            raise StateError(f"State file {self.state_file_path} does not contain a JSON object")
        return state

    def _save_state(self, state: Dict):
        """Saves state to the JSON file, replacing it atomically."""
        tmp_path = f"{self.state_file_path}.tmp"
        try:
            # Ensure parent directory exists
            os.makedirs(os.path.dirname(self.state_file_path) or '.', exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(state, f, indent=2)
            os.replace(tmp_path, self.state_file_path)
        except (IOError, TypeError, ValueError) as e:
            logger.error(f"Error saving state to {self.state_file_path}: {e}", exc_info=True)
            try:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temporary state file {tmp_path}: {cleanup_error}")
            raise StateError(f"Failed to save state: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._load_state().get(key, default)

    def set(self, key: str, value: Any) -> None:
        state = self._load_state()
        state[key] = value
        self._save_state(state)

    def remove(self, key: str) -> None:
        state = self._load_state()
        if key in state:
            del state[key]
            self._save_state(state)


class RecordStore:
    """
    The local collection of analysis records, the sync settings and the pending conflict queue.

    Pure data access; no network. Every engine that operates on one store shares `lock`,
    which is what keeps concurrent sync operations on the same store from interleaving.
    """

    def __init__(self, kv_store: KeyValueStore):
        if not isinstance(kv_store, KeyValueStore):
            raise TypeError("kv_store must be a KeyValueStore object")
        self.kv = kv_store
        self.lock = threading.RLock()

    # --- Sync Settings ---

    def get_sync_settings(self) -> SyncSettings:
        return SyncSettings.from_dict(self.kv.get(SYNC_SETTINGS_KEY))

    def set_sync_settings(self, **partial) -> SyncSettings:
        """Merges the given fields into the stored settings and returns the result."""
        unknown = set(partial) - set(SyncSettings.FIELD_KEYS)
        if unknown:
            raise ValueError(f"Unknown sync settings field(s): {', '.join(sorted(unknown))}")
        current = self.get_sync_settings()
        for attr, value in partial.items():
            setattr(current, attr, value)
        self.kv.set(SYNC_SETTINGS_KEY, current.to_dict())
        logger.debug(f"Updated sync settings fields: {sorted(partial)}")
        return current

    # --- Analysis History ---

    def get_history(self) -> List[AnalysisRecord]:
        raw = self.kv.get(ANALYSIS_HISTORY_KEY)
        if not isinstance(raw, list):
            return []
        records = []
        for item in raw:
            try:
                records.append(AnalysisRecord.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed stored analysis record: {e}")
        return records

    def save_history(self, records: List[AnalysisRecord]) -> None:
        self.kv.set(ANALYSIS_HISTORY_KEY, [r.to_dict() for r in records])

    def add_record(self, title: str, url: str, analysis: Dict[str, Any]) -> AnalysisRecord:
        """Creates a new record with a fresh id and timestamp and puts it at the top of the history."""
        record = AnalysisRecord(
            id=str(uuid.uuid4()),
            title=title,
            url=url,
            timestamp=now_ms(),
            analysis=analysis,
        )
        with self.lock:
            self.save_history([record] + self.get_history())
        logger.info(f"Added analysis record {record.id}")
        return record

    def delete_record(self, record_id: str) -> bool:
        with self.lock:
            history = self.get_history()
            remaining = [r for r in history if r.id != record_id]
            self.save_history(remaining)
        return len(remaining) != len(history)

    def clear_history(self) -> None:
        self.save_history([])

    # --- Conflict Queue ---

    def get_conflict_queue(self) -> List[ConflictRecord]:
        raw = self.kv.get(CONFLICT_QUEUE_KEY)
        if not isinstance(raw, list):
            return []
        conflicts = []
        for item in raw:
            try:
                conflicts.append(ConflictRecord.from_dict(item))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed queued conflict: {e}")
        return conflicts

    def set_conflict_queue(self, conflicts: List[ConflictRecord]) -> None:
        self.kv.set(CONFLICT_QUEUE_KEY, [c.to_dict() for c in conflicts])

    def add_conflict(self, conflict: ConflictRecord) -> None:
        queue = self.get_conflict_queue()
        exists = any(c.local.id == conflict.local.id and c.local.url == conflict.local.url for c in queue)
        if not exists:
            self.set_conflict_queue(queue + [conflict])

    def remove_conflict(self, local_id: str) -> None:
        self.set_conflict_queue([c for c in self.get_conflict_queue() if c.local.id != local_id])

    def clear_conflict_queue(self) -> None:
        self.set_conflict_queue([])
