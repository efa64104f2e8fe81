# sync.py
# Description: FastAPI endpoints for manual sync actions, conflict review, sync settings and the local history.
#
# Imports
import asyncio
from typing import List
#
# 3rd-party imports
from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
#
# Local Imports
from nuance_sync.app.api.v1.API_Deps.Sync_Deps import (
    get_auto_sync_trigger,
    get_conflict_resolver,
    get_sync_manager,
)
from nuance_sync.app.api.v1.schemas.sync_schemas import (
    AnalysisRecordModel,
    ConflictModel,
    CreateRecordResponse,
    NewAnalysisRecord,
    ResolveConflictRequest,
    SyncResultResponse,
    SyncSettingsResponse,
    SyncSettingsUpdate,
    SyncStatusResponse,
    ValidateTokenRequest,
)
from nuance_sync.app.core.Sync import AutoSyncTrigger, ConflictResolver, SyncManager, SyncResult, SyncSettings
from nuance_sync.app.core.Sync.exceptions import StateError
#
#######################################################################################################################
#
# Functions:

router = APIRouter()

# Sync operations block on network and file I/O, so they run in a worker thread.
# Their outcome travels in the body (success/error_code); HTTP errors are reserved for bad requests
# and local storage failures outside the engine.


def _result(result: SyncResult) -> SyncResultResponse:
    return SyncResultResponse(**result.to_dict())

def _settings(settings: SyncSettings) -> SyncSettingsResponse:
    return SyncSettingsResponse(
        has_token=settings.has_token,
        blob_id=settings.blob_id,
        last_sync_time=settings.last_sync_time,
        auto_sync=settings.auto_sync,
        sync_on_analyze=settings.sync_on_analyze,
    )

def _update_settings(manager: SyncManager, changes: dict) -> SyncSettings:
    # Waits out any in-flight sync so it can't overwrite the change with stale settings
    with manager.store.lock:
        return manager.store.set_sync_settings(**changes)

def _storage_error(e: StateError) -> HTTPException:
    logger.error(f"Local store failure: {e}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Local store error: {e}")


# --- Sync actions ---

@router.post("/bootstrap", response_model=SyncResultResponse, summary="Bind to an existing remote blob or create one")
async def bootstrap(manager: SyncManager = Depends(get_sync_manager)):
    return _result(await asyncio.to_thread(manager.sync_with_lookup_or_create))


@router.post("/push", response_model=SyncResultResponse, summary="Overwrite the remote blob with the local history")
async def push(manager: SyncManager = Depends(get_sync_manager)):
    return _result(await asyncio.to_thread(manager.push))


@router.post("/pull", response_model=SyncResultResponse, summary="Add remote records missing locally")
async def pull(manager: SyncManager = Depends(get_sync_manager)):
    return _result(await asyncio.to_thread(manager.pull))


@router.post("/bidirectional", response_model=SyncResultResponse, summary="Pull then push, or queue conflicts")
async def bidirectional(manager: SyncManager = Depends(get_sync_manager)):
    return _result(await asyncio.to_thread(manager.sync_bidirectional))


# --- Conflicts ---

@router.get("/conflicts", response_model=List[ConflictModel], summary="List the pending conflict queue")
async def list_conflicts(manager: SyncManager = Depends(get_sync_manager)):
    try:
        queue = await asyncio.to_thread(manager.store.get_conflict_queue)
        return [c.to_dict() for c in queue]
    except StateError as e:
        raise _storage_error(e)


@router.post("/conflicts/resolve-all", response_model=SyncResultResponse, summary="Resolve every queued conflict")
async def resolve_all_conflicts(
    body: ResolveConflictRequest,
    resolver: ConflictResolver = Depends(get_conflict_resolver)
):
    return _result(await asyncio.to_thread(resolver.resolve_all, body.prefer))


@router.post("/conflicts/{record_id}/resolve", response_model=SyncResultResponse, summary="Resolve one queued conflict")
async def resolve_conflict(
    record_id: str,
    body: ResolveConflictRequest,
    resolver: ConflictResolver = Depends(get_conflict_resolver)
):
    return _result(await asyncio.to_thread(resolver.resolve_one, record_id, body.prefer))


# --- Status & settings ---

@router.get("/status", response_model=SyncStatusResponse, summary="Summarize the sync state")
async def sync_status(manager: SyncManager = Depends(get_sync_manager)):
    try:
        info = await asyncio.to_thread(manager.get_sync_status_info)
    except StateError as e:
        raise _storage_error(e)
    raw_url = await asyncio.to_thread(manager.get_raw_url)
    return SyncStatusResponse(
        status=info.status,
        message=info.message,
        conflicts_count=info.conflicts_count,
        last_sync_text=info.last_sync_text,
        raw_url=raw_url,
    )


@router.get("/settings", response_model=SyncSettingsResponse, summary="Read sync settings")
async def read_settings(manager: SyncManager = Depends(get_sync_manager)):
    try:
        return _settings(await asyncio.to_thread(manager.store.get_sync_settings))
    except StateError as e:
        raise _storage_error(e)


@router.patch("/settings", response_model=SyncSettingsResponse, summary="Update sync settings")
async def update_settings(body: SyncSettingsUpdate, manager: SyncManager = Depends(get_sync_manager)):
    changes = body.model_dump(exclude_unset=True)
    # A blob id may be explicitly cleared with null; the other fields may not
    changes = {k: v for k, v in changes.items() if v is not None or k == "blob_id"}
    try:
        updated = await asyncio.to_thread(_update_settings, manager, changes)
    except StateError as e:
        raise _storage_error(e)
    logger.info(f"Sync settings updated: {sorted(changes)}")
    return _settings(updated)


@router.post("/validate-token", response_model=SyncResultResponse, summary="Check a token against the remote")
async def validate_token(body: ValidateTokenRequest, manager: SyncManager = Depends(get_sync_manager)):
    return _result(await asyncio.to_thread(manager.validate_token, body.token))


# --- Local history ---

@router.get("/records", response_model=List[AnalysisRecordModel], summary="List the local history")
async def list_records(manager: SyncManager = Depends(get_sync_manager)):
    try:
        history = await asyncio.to_thread(manager.store.get_history)
        return [r.to_dict() for r in history]
    except StateError as e:
        raise _storage_error(e)


@router.post("/records", response_model=CreateRecordResponse, status_code=status.HTTP_201_CREATED,
             summary="Add a record and run auto-sync")
async def create_record(
    body: NewAnalysisRecord,
    manager: SyncManager = Depends(get_sync_manager),
    trigger: AutoSyncTrigger = Depends(get_auto_sync_trigger)
):
    try:
        record = await asyncio.to_thread(manager.store.add_record, body.title, body.url, body.analysis)
    except StateError as e:
        raise _storage_error(e)
    auto_result = await asyncio.to_thread(trigger.on_record_created, record)
    if not auto_result.success and not auto_result.skipped:
        logger.warning(f"Auto-sync after creating {record.id} failed: {auto_result.error_detail}")
    return CreateRecordResponse(record=AnalysisRecordModel(**record.to_dict()), auto_sync=_result(auto_result))


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a local record")
async def delete_record(record_id: str, manager: SyncManager = Depends(get_sync_manager)):
    try:
        deleted = await asyncio.to_thread(manager.store.delete_record, record_id)
    except StateError as e:
        raise _storage_error(e)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")

#
# End of sync.py
#######################################################################################################################
