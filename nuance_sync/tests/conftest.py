# conftest.py
# Description: Shared fixtures for the sync tests: an in-memory record store and a fake remote blob service.
#
# Imports
import copy
from typing import Dict, List, Optional
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from nuance_sync.app.core.Sync import (
    AnalysisRecord,
    BlobTransport,
    InMemoryKeyValueStore,
    RecordStore,
    SyncManager,
)
from nuance_sync.app.core.Sync.exceptions import AuthError, RemoteServiceError
#
#######################################################################################################################
#
# Functions:

VALID_TOKEN = "ghp_test_token_123"


def make_record(record_id: str, url: str, timestamp: int = 1000, title: Optional[str] = None) -> AnalysisRecord:
    return AnalysisRecord(
        id=record_id,
        title=title if title is not None else f"Title {record_id}",
        url=url,
        timestamp=timestamp,
        analysis={"idioms": [f"idiom-{record_id}"], "syntax": [], "vocabulary": []},
    )


class FakeBlobTransport(BlobTransport):
    """In-memory stand-in for the remote service. Stores snapshots as plain dicts."""

    def __init__(self, valid_tokens=(VALID_TOKEN,)):
        self.valid_tokens = set(valid_tokens)
        self.blobs: Dict[str, List[dict]] = {}
        self.owned: List[str] = [] # ids of blobs carrying the well-known file
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {} # method name -> exception to raise
        self._next_id = 1

    def _check(self, method: str, token: str):
        self.calls.append((method, token))
        if method in self.fail_on:
            raise self.fail_on[method]
        if token not in self.valid_tokens:
            raise AuthError("bad token")

    def seed_blob(self, records: List[AnalysisRecord], blob_id: Optional[str] = None) -> str:
        blob_id = blob_id or f"blob-{self._next_id}"
        self._next_id += 1
        self.blobs[blob_id] = [r.to_dict() for r in records]
        self.owned.append(blob_id)
        return blob_id

    def records_in(self, blob_id: str) -> List[AnalysisRecord]:
        return [AnalysisRecord.from_dict(d) for d in self.blobs[blob_id]]

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def find_owned_blob(self, token):
        self._check("find_owned_blob", token)
        return self.owned[0] if self.owned else None

    def create_blob(self, token, records):
        self._check("create_blob", token)
        return self.seed_blob(records)

    def update_blob(self, token, blob_id, records):
        self._check("update_blob", token)
        if blob_id not in self.blobs:
            raise RemoteServiceError("Failed to update blob", status_code=404, detail="Not Found")
        self.blobs[blob_id] = [r.to_dict() for r in records]

    def read_blob(self, token, blob_id):
        self._check("read_blob", token)
        return [AnalysisRecord.from_dict(copy.deepcopy(d)) for d in self.blobs.get(blob_id, [])]

    def validate_token(self, token):
        self.calls.append(("validate_token", token))
        return token in self.valid_tokens

    def get_raw_url(self, token, blob_id):
        self._check("get_raw_url", token)
        if blob_id not in self.blobs:
            return None
        return f"https://gist.example/raw/{blob_id}/nuance-history.json"


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv_store):
    return RecordStore(kv_store)


@pytest.fixture
def transport():
    return FakeBlobTransport()


@pytest.fixture
def manager(store, transport):
    return SyncManager(store=store, transport=transport, lock_timeout=0.5)


@pytest.fixture
def with_token(store):
    store.set_sync_settings(remote_token=VALID_TOKEN)
    return store


@pytest.fixture
def bound(store, transport):
    """Store with a token and bound to an existing (empty) remote blob."""
    blob_id = transport.seed_blob([])
    store.set_sync_settings(remote_token=VALID_TOKEN, blob_id=blob_id)
    return blob_id

#
# End of conftest.py
#######################################################################################################################
