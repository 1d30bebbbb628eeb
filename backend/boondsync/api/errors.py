"""
Exception handlers turning integration errors into structured payloads.

Every error body has the shape ``{success: false, environment, error}``;
permission failures add ``permissionError: true``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from boondsync.integrations.boondmanager.errors import (
    BoondAuthError,
    BoondConfigError,
    BoondError,
    BoondNotFoundError,
    BoondPermissionError,
    BoondValidationError,
    RemoteServiceError,
    TransientNetworkError,
    WriteForbiddenError,
)
from boondsync.services.boond_sync.run_tracker import SyncInProgressError

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins
STATUS_BY_ERROR = [
    (BoondNotFoundError, status.HTTP_404_NOT_FOUND),
    (BoondPermissionError, status.HTTP_403_FORBIDDEN),
    (WriteForbiddenError, status.HTTP_403_FORBIDDEN),
    (BoondValidationError, status.HTTP_400_BAD_REQUEST),
    (TransientNetworkError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (BoondAuthError, status.HTTP_502_BAD_GATEWAY),
    (RemoteServiceError, status.HTTP_502_BAD_GATEWAY),
    (BoondConfigError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def http_status_for(exc: BoondError) -> int:
    for error_class, code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_502_BAD_GATEWAY


def _environment_of(request: Request) -> Optional[str]:
    environment = getattr(request.state, "environment", None)
    if environment:
        return environment
    return request.query_params.get("env")


def error_payload(message: str, environment: Optional[str], **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": False, "environment": environment, "error": message}
    payload.update(extra)
    return payload


async def boond_error_handler(request: Request, exc: BoondError) -> JSONResponse:
    code = http_status_for(exc)
    extra: Dict[str, Any] = {}
    if isinstance(exc, BoondPermissionError):
        extra["permissionError"] = True

    if code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=code,
        content=error_payload(exc.message, _environment_of(request), **extra),
    )


async def sync_in_progress_handler(request: Request, exc: SyncInProgressError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_payload(str(exc), _environment_of(request)),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_payload(f"Invalid request: {details}", _environment_of(request)),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BoondError, boond_error_handler)
    app.add_exception_handler(SyncInProgressError, sync_in_progress_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
