"""
Exception handlers that render every failure as the standard error envelope
"""

from datetime import datetime, timezone
from typing import List, Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import ErrorKind, LoanManagementError
from ..logging_config import get_logger, log_action
from .schemas import ErrorResponse

logger = get_logger(__name__)


def error_response(
    request: Request,
    kind: ErrorKind,
    message: str,
    details: Optional[List[str]] = None
) -> JSONResponse:
    body = ErrorResponse(
        error=kind.code,
        message=message,
        status=kind.http_status,
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        details=details
    )
    return JSONResponse(status_code=kind.http_status, content=body.to_json())


def _field_message(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) if loc else "request"
    return f"{field}: {error.get('msg', 'Invalid value')}"


async def handle_loan_management_error(request: Request, exc: LoanManagementError) -> JSONResponse:
    level = "error" if exc.http_status >= 500 else "warning"
    log_action(
        logger, level, exc.message,
        action="http_error", resource=request.url.path,
        extra={"error_code": exc.code, "status": exc.http_status}
    )
    return error_response(request, exc.kind, exc.message, exc.details or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [_field_message(error) for error in exc.errors()]
    return error_response(request, ErrorKind.VALIDATION_FAILED, "Input validation failed", details)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log_action(
        logger, "error", f"Unhandled error on {request.method} {request.url.path}",
        action="http_error", resource=request.url.path, exc_info=True
    )
    return error_response(
        request, ErrorKind.INTERNAL_SERVER_ERROR, "An unexpected error occurred"
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LoanManagementError, handle_loan_management_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
