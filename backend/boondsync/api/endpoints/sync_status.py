"""
Sync Status API Endpoint.
Provides real-time progress monitoring of the production -> sandbox sync.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter
from pydantic import BaseModel

from boondsync.api.deps import SyncServiceDep

router = APIRouter()
logger = logging.getLogger(__name__)


class SyncStatusResponse(BaseModel):
    """Sync status response."""
    phase: str
    started_at: str | None
    current_step: str
    resource_types: List[str]
    progress: Dict[str, Any]
    errors: list
    completed_at: str | None
    duration_seconds: float
    is_running: bool
    cancel_requested: bool


@router.get("/sync-status", response_model=SyncStatusResponse)
async def get_sync_status(service: SyncServiceDep) -> SyncStatusResponse:
    """
    Get current sync status.

    Poll every 2-5 seconds while a sync runs.

    Returns:
        Current (or last) run status with progress counters
    """
    return SyncStatusResponse(**service.get_status())
