import logging
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.fixpos.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.fixpos.core.logging import log_json

logger = logging.getLogger(__name__)

_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}

_DB_UNAVAILABLE_MARKERS = (
    "unable to open database",
    "could not connect",
    "connection refused",
    "database is locked",
)


def _is_db_unavailable(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _DB_UNAVAILABLE_MARKERS)


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


def json_safe(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def _validation_error_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(item) for item in loc if item not in {"body", "query", "path", "header"}) or None
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": json_safe(error.get("input")),
                "ctx": json_safe(error.get("ctx")),
            }
        )
    return {"errors": errors}


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "details": details,
            "trace_id": trace_id,
        },
    )


async def _respond(
    request: Request,
    exc: Exception,
    *,
    code: str,
    message: str,
    details: object,
    status_code: int,
) -> JSONResponse:
    request.state.error_code = code
    request.state.error_class = exc.__class__.__name__
    payload = {"code": code, "message": message, "details": details, "trace_id": _trace_id(request)}
    # A failed attempt stays re-drivable under the same Idempotency-Key.
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        await context.record_failure(status_code=status_code, response_body=payload)
    return JSONResponse(status_code=status_code, content=payload)


async def _respond_with(request: Request, exc: Exception, error: ErrorDefinition, details: object) -> JSONResponse:
    return await _respond(
        request,
        exc,
        code=error.code,
        message=error.message,
        details=details,
        status_code=error.status_code,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return await _respond_with(request, exc, exc.error, json_safe(exc.details))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _respond(
            request,
            exc,
            code=_HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR"),
            message=str(exc.detail) if exc.detail is not None else "HTTP error",
            details=None,
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return await _respond_with(request, exc, ErrorCatalog.VALIDATION_ERROR, _validation_error_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        error = ErrorCatalog.DB_UNAVAILABLE if _is_db_unavailable(exc) else ErrorCatalog.INTERNAL_ERROR
        log_json(
            logger,
            {
                "event": "unhandled_error",
                "code": error.code,
                "error_class": exc.__class__.__name__,
                "path": request.url.path,
                "trace_id": _trace_id(request),
            },
            level=logging.ERROR,
        )
        return await _respond_with(request, exc, error, {"type": exc.__class__.__name__})
