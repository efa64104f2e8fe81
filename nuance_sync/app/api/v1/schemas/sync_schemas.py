# sync_schemas.py
# Description: Request/response models for the local sync API.
#
# Imports
from typing import Any, Dict, List, Optional
#
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
# Local Imports
from nuance_sync.app.core.Sync.models import ConflictPreference
#
########################################################################################################################
#
# Functions:

# --- Pydantic Models ---

class AnalysisRecordModel(BaseModel):
    id: str
    title: str
    url: str
    timestamp: int = Field(..., description="Creation/last-modification time, epoch milliseconds.")
    analysis: Dict[str, Any] = Field(default_factory=dict, description="Opaque categorized item lists.")


class NewAnalysisRecord(BaseModel):
    """Body of POST /records. Id and timestamp are assigned by the store."""
    title: str
    url: str
    analysis: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "An article",
                "url": "https://example.com/article",
                "analysis": {"idioms": [], "syntax": [], "vocabulary": []}
            }
        }
    )


class ConflictModel(BaseModel):
    local: AnalysisRecordModel
    remote: AnalysisRecordModel
    localTimestamp: int
    remoteTimestamp: int


class SyncResultResponse(BaseModel):
    """
    Outcome of a sync operation. Always returned with HTTP 200;
    clients read `success` and `error_code` instead of the status code.
    """
    success: bool
    error_code: Optional[str] = Field(None, description="One of the SYNC_* codes when success is false.")
    error_detail: Optional[str] = None
    pushed: Optional[int] = None
    pulled: Optional[int] = None
    conflicts: Optional[List[ConflictModel]] = None
    skipped: bool = Field(False, description="True for non-fatal policy skips (e.g. auto-sync disabled).")


class CreateRecordResponse(BaseModel):
    record: AnalysisRecordModel
    auto_sync: SyncResultResponse


class ResolveConflictRequest(BaseModel):
    prefer: ConflictPreference = Field(..., description="Which side wins: 'local' or 'remote'.")


class SyncSettingsResponse(BaseModel):
    """Sync settings as shown to clients. The token itself is never returned."""
    has_token: bool
    blob_id: Optional[str] = None
    last_sync_time: int = 0
    auto_sync: bool = True
    sync_on_analyze: bool = True


class SyncSettingsUpdate(BaseModel):
    remote_token: Optional[str] = None
    blob_id: Optional[str] = None
    auto_sync: Optional[bool] = None
    sync_on_analyze: Optional[bool] = None


class ValidateTokenRequest(BaseModel):
    token: Optional[str] = Field(None, description="Token to check; the stored token is used when omitted.")


class SyncStatusResponse(BaseModel):
    status: str = Field(..., description="'idle', 'syncing', 'error' or 'conflict'.")
    message: str
    conflicts_count: int
    last_sync_text: str
    raw_url: Optional[str] = None

#
# End of sync_schemas.py
#######################################################################################################################
