from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from salescrm.context import get_correlation_id
from salescrm.errors import CRMError, ValidationError


logger = logging.getLogger("salescrm.api")


@dataclass
class ErrorEnvelope:
    status: str
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
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(
        status="fail" if status_code < 500 else "error",
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(asdict(payload)))


async def handle_crm_error(request: Request, exc: CRMError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request.failed", extra={"error": exc.message, "path": request.url.path})
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=ValidationError.status_code,
        code=ValidationError.code,
        message="Invalid request payload",
        details=jsonable_encoder(exc.errors()),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CRMError, handle_crm_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)  # type: ignore[arg-type]
