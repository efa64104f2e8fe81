# main.py
# Description: FastAPI application exposing the history sync engine over a local HTTP API.
#
# Imports
from contextlib import asynccontextmanager
#
# 3rd-party Libraries
from fastapi import FastAPI
from loguru import logger
#
# Local Imports
from nuance_sync.app.core.config import SyncConfig
from nuance_sync.app.core.logging_config import configure_logging
#
# Sync Endpoint
from nuance_sync.app.api.v1.endpoints.sync import router as sync_router
#
########################################################################################################################
#
# Functions:

_config = SyncConfig.from_toml()
configure_logging(_config.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Sync API starting; remote {_config.api_base_url}, state file {_config.state_file}")
    yield
    logger.info("Sync API shutting down")


app = FastAPI(
    title="Nuance Sync API",
    version="1.0.0",
    description="Local API for syncing the analysis history with a private remote blob",
    lifespan=lifespan,
)


@app.get("/")
async def root():
    return {"message": "Nuance Sync API"}


# Router for history sync
app.include_router(sync_router, prefix="/api/v1/sync", tags=["sync"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

#
# End of main.py
########################################################################################################################
