"""
FastAPI dependencies shared by the endpoint modules.
"""

from typing import Annotated

from fastapi import Depends, Request

from boondsync.services.boond_sync import BoondSyncService


def get_sync_service(request: Request) -> BoondSyncService:
    """The service built once in the application lifespan."""
    return request.app.state.sync_service


SyncServiceDep = Annotated[BoondSyncService, Depends(get_sync_service)]
