"""
Custom exception hierarchy for the Curva S changelog service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing Portuguese or English messages.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CurvaSException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SnapshotAlreadyExistsError(CurvaSException):
    http_status = status.HTTP_409_CONFLICT
    code = "SNAPSHOT_ALREADY_EXISTS"

    def __init__(self, project_code: str, snapshot_date: date):
        super().__init__(
            message=(
                f"Snapshot {snapshot_date} for project {project_code} "
                "already exists and cannot be replaced."
            ),
            details={"project_code": project_code, "snapshot_date": str(snapshot_date)},
        )


class InvalidAnnotationKeyError(CurvaSException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_ANNOTATION_KEY"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )


class ChangelogLoadError(CurvaSException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CHANGELOG_LOAD_ERROR"

    def __init__(self, message: str, project_code: str | None = None):
        super().__init__(
            message=message,
            details={"project_code": project_code} if project_code else {},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def curvas_exception_handler(request: Request, exc: CurvaSException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """422 envelope listing each rejected field of a snapshot or annotation payload."""
    field_errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Rejected %s %s: %s",
        request.method, request.url.path,
        ", ".join(e["field"] or "<body>" for e in field_errors),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": f"Invalid request: {len(field_errors)} field(s) rejected.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
