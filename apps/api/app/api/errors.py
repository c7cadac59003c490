from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.context import get_correlation_id
from app.custom_fields.errors import ConflictError, CustomFieldError, InvalidArgumentError, NotFoundError


logger = logging.getLogger("app.api")

_STATUS_BY_ERROR: tuple[tuple[type[CustomFieldError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidArgumentError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def status_for(exc: CustomFieldError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def custom_field_error_handler(request: Request, exc: CustomFieldError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "request.rejected",
        extra={"method": request.method, "path": request.url.path, "status_code": status_code, "error": str(exc)},
    )
    details = None
    if isinstance(exc, NotFoundError):
        details = {"resource": exc.resource, "id": exc.record_id}
    return error_response(request, status_code=status_code, code=exc.code, message=str(exc), details=details)
