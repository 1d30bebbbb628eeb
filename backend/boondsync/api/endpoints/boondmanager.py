"""
BoondManager API Endpoints.

Read access to one environment at a time, snapshot export, quality
analysis and the production -> sandbox sync.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from boondsync.api.deps import SyncServiceDep
from boondsync.core.environment import Environment, parse_environment
from boondsync.integrations.boondmanager.errors import BoondNotFoundError, BoondValidationError
from boondsync.integrations.boondmanager.schema import (
    ResourceType,
    get_endpoint,
    get_listable_types,
)
from boondsync.services.boond_sync import BoondSyncService

router = APIRouter()
logger = logging.getLogger(__name__)

# URL collection name -> resource type ("candidates" -> CANDIDATE)
COLLECTIONS: Dict[str, ResourceType] = {
    get_endpoint(rtype).strip("/"): rtype for rtype in get_listable_types()
}


class SyncRequest(BaseModel):
    """Optional body of POST /sync."""
    resource_types: Optional[List[str]] = None


def _success(environment: Optional[Environment], data: Any, **extra: Any) -> Dict[str, Any]:
    payload = {
        "success": True,
        "environment": environment.value if environment else None,
        "data": data,
    }
    payload.update(extra)
    return payload


def _environment(request: Request, service: BoondSyncService, env: Optional[str]) -> Environment:
    """Parse ``env`` and remember it for error payloads."""
    environment = parse_environment(env, service.settings.boond_default_environment)
    request.state.environment = environment.value
    return environment


def _collection(name: str) -> ResourceType:
    rtype = COLLECTIONS.get(name.lower())
    if rtype is None:
        raise BoondNotFoundError(f"Unknown resource collection '{name}'")
    return rtype


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


# =============================================================================
# Sync & snapshots
# =============================================================================


@router.get("/boondmanager/sync")
async def get_snapshot(
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
    include_documents: bool = False,
):
    """
    Fetch a full snapshot of one environment.

    Query params:
        env: production | sandbox (default from settings)
        include_documents: also list resumes of candidates and resources
    """
    environment = _environment(request, service, env)
    snapshot = await service.fetch_all_data(environment, include_documents=include_documents)
    return _success(environment, snapshot.to_dict())


@router.post("/boondmanager/sync")
async def start_sync(
    request: Request,
    service: SyncServiceDep,
    body: Optional[SyncRequest] = None,
):
    """
    Replicate production into sandbox.

    Runs to completion and returns the aggregated result. A second
    request while a run is active answers 409.
    """
    request.state.environment = Environment.SANDBOX.value
    result = await service.sync_prod_to_sandbox(body.resource_types if body else None)

    payload = _success(Environment.SANDBOX, result.to_dict())
    if result.status == "error":
        payload["success"] = False
        payload["error"] = result.message
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
    return payload


@router.post("/boondmanager/sync/cancel")
async def cancel_sync(service: SyncServiceDep):
    """Request cancellation of the active sync run."""
    cancelled = service.cancel_sync()
    return _success(Environment.SANDBOX, {"cancelRequested": cancelled})


@router.get("/boondmanager/quality")
async def get_quality_report(
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
):
    """Data-quality report (duplicates, incomplete records) of one environment."""
    environment = _environment(request, service, env)
    report = await service.analyze_all_data_quality(environment)
    return _success(environment, report.to_dict())


@router.get("/boondmanager/export")
async def export_data(
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
    export_format: str = Query(default="json", alias="format"),
    resource_type: Optional[str] = None,
    clean: bool = False,
):
    """
    Export one environment as a downloadable file.

    JSON exports the whole snapshot; CSV exports a single collection
    (``resource_type``, e.g. ``candidates``).
    """
    environment = _environment(request, service, env)
    export_format = export_format.lower()
    if export_format not in ("json", "csv"):
        raise BoondValidationError(f"Unknown export format '{export_format}'. Expected 'json' or 'csv'")
    if export_format == "csv" and not resource_type:
        raise BoondValidationError("CSV export needs a resource_type")

    csv_type = None
    if export_format == "csv":
        csv_type = COLLECTIONS.get(resource_type.lower())
        if csv_type is None:
            raise BoondValidationError(f"Unknown resource collection '{resource_type}'")

    snapshot = await service.fetch_all_data(environment)
    if clean:
        snapshot = service.clean_snapshot(snapshot)

    if csv_type is not None:
        content = service.export_to_csv(snapshot.records_of(csv_type), resource_type=csv_type)
        filename = f"{resource_type.lower()}_{environment.value}_{_today()}.csv"
        media_type = "text/csv"
    else:
        content = service.export_to_json(snapshot)
        filename = f"boondmanager_{environment.value}_{_today()}.json"
        media_type = "application/json"

    logger.info(f"📤 Exported {filename}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================================================
# Documents
# =============================================================================


@router.get("/boondmanager/documents/{document_id}")
async def download_document(
    document_id: str,
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
):
    """Binary pass-through of one document. 403 when the credential cannot read it."""
    environment = _environment(request, service, env)
    async with service.client_for(environment) as client:
        document = await client.download_document(document_id)

    return Response(
        content=document.content,
        media_type=document.mime_type,
        headers={
            "Content-Disposition": f'inline; filename="{document.filename}"',
            "Cache-Control": "private, max-age=3600",
        },
    )


# =============================================================================
# Records
# =============================================================================


@router.get("/boondmanager/{collection}")
async def list_records(
    collection: str,
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
    page: int = 1,
    max_results: int = Query(default=30, alias="maxResults"),
    keywords: Optional[str] = None,
    state: Optional[int] = None,
    company: Optional[int] = None,
    sort: Optional[str] = None,
):
    """One page of a collection (candidates, resources, projects, ...)."""
    environment = _environment(request, service, env)
    rtype = _collection(collection)

    filters: Dict[str, Any] = {
        "page": page,
        "max_results": max_results,
        "keywords": keywords,
        "state": state,
        "company": company,
    }
    if sort:
        filters["sort"] = sort

    async with service.client_for(environment) as client:
        result = await client.list(rtype, filters)

    return _success(
        environment,
        [record.model_dump() for record in result.records],
        meta=result.meta.model_dump(),
    )


@router.get("/boondmanager/{collection}/{record_id}")
async def get_record(
    collection: str,
    record_id: str,
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
    tab: Optional[str] = None,
):
    """One record, or one of its detail views (``tab``)."""
    environment = _environment(request, service, env)
    rtype = _collection(collection)

    async with service.client_for(environment) as client:
        detail = await client.get(rtype, record_id, tab=tab)

    return _success(environment, detail.model_dump()["data"], included=detail.included)


@router.get("/boondmanager/{collection}/{record_id}/resumes")
async def list_resumes(
    collection: str,
    record_id: str,
    request: Request,
    service: SyncServiceDep,
    env: Optional[str] = None,
):
    """Resumes attached to a candidate or resource."""
    environment = _environment(request, service, env)
    rtype = _collection(collection)

    async with service.client_for(environment) as client:
        documents = await client.get_resumes(rtype, record_id)

    return _success(environment, [document.model_dump() for document in documents])
