"""Translation of domain errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ...core.exceptions import BillPilotError, MissingField, RateLimited, ValidationError

logger = logging.getLogger(__name__)


def error_response(exc: BillPilotError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": type(exc).__name__, "detail": exc.message},
        headers=headers,
    )


def _from_request_validation(exc: RequestValidationError) -> ValidationError:
    errors = exc.errors()
    if not errors:
        return ValidationError("Invalid request")
    first = errors[0]
    field = str(first.get("loc", ["", "body"])[-1])
    if first.get("type") == "missing":
        return MissingField(field)
    message = str(first.get("msg", "Invalid value"))
    # pydantic prefixes messages raised from validators
    message = message.removeprefix("Value error, ")
    return ValidationError(f"{field}: {message}")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BillPilotError)
    async def handle_billpilot_error(request: Request, exc: BillPilotError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(_from_request_validation(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "detail": "Internal server error"},
        )
