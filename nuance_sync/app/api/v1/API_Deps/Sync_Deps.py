# Sync_Deps.py
# Description: Builds and caches the record store and sync engine shared by all sync endpoints.
#
# Imports
import threading
from typing import Optional
#
# 3rd-party Libraries
from fastapi import Depends
from loguru import logger
#
# Local Imports
from nuance_sync.app.core.config import SyncConfig
from nuance_sync.app.core.Sync import (
    AutoSyncTrigger,
    ConflictResolver,
    GistBlobTransport,
    JsonFileKeyValueStore,
    RecordStore,
    SyncManager,
)
#
#######################################################################################################################

_sync_manager: Optional[SyncManager] = None
_sync_manager_lock = threading.Lock() # Protects creation of the shared manager


def build_sync_manager(config: SyncConfig) -> SyncManager:
    """Wires a SyncManager from configuration."""
    store = RecordStore(JsonFileKeyValueStore(config.state_file))
    transport = GistBlobTransport(
        base_url=config.api_base_url,
        blob_filename=config.blob_filename,
        blob_description=config.blob_description,
        format_version=config.format_version,
        timeout=config.request_timeout,
    )
    return SyncManager(store=store, transport=transport, lock_timeout=config.lock_timeout)


def get_sync_manager() -> SyncManager:
    """FastAPI dependency returning the process-wide SyncManager."""
    global _sync_manager
    if _sync_manager is None:
        with _sync_manager_lock:
            if _sync_manager is None:
                config = SyncConfig.from_toml()
                problems = config.validate()
                if problems:
                    logger.warning(f"Sync configuration problems: {'; '.join(problems)}")
                logger.info(f"Creating sync manager with state file {config.state_file}")
                _sync_manager = build_sync_manager(config)
    return _sync_manager


def get_conflict_resolver(manager: SyncManager = Depends(get_sync_manager)) -> ConflictResolver:
    return ConflictResolver(manager)


def get_auto_sync_trigger(manager: SyncManager = Depends(get_sync_manager)) -> AutoSyncTrigger:
    return AutoSyncTrigger(manager)

#
# End of Sync_Deps.py
#######################################################################################################################
