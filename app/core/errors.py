"""
app/core/errors.py

Purpose: HTTP error mapping

- RelayBotError subclasses -> their status code and error code
- Framework errors (404/405, request validation) -> the same envelope
- Anything unexpected -> 500, except on the Telegram webhook, which is
  acknowledged so Telegram does not redeliver the update forever
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from app.core.exceptions import RelayBotError
from app.schemas.response import ErrorResponse, WebhookAck
from app.core.config import settings

logger = logging.getLogger(__name__)

WEBHOOK_SUFFIX = "/telegram/webhook"


def error_response(status_code: int, error: str, code: str, details: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code, details=details).model_dump(),
    )


def add_exception_handlers(app: FastAPI):
    """
    Registers exception handlers with the FastAPI app.
    """
    @app.exception_handler(RelayBotError)
    async def relaybot_exception_handler(request: Request, exc: RelayBotError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra={"url": str(request.url)})
        elif exc.status_code == 401:
            client = request.client.host if request.client else "unknown"
            logger.warning(f"Rejected request to {request.url.path} from {client}: {exc.message}")
        return error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(422, "Input validation failed", "VALIDATION_ERROR", jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all for unhandled exceptions.
        """
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}",
            exc_info=True
        )

        if request.method == "POST" and request.url.path.endswith(WEBHOOK_SUFFIX):
            return JSONResponse(status_code=200, content=WebhookAck(ok=False, status="error").model_dump())

        message = "An internal error occurred. Please try again later." if settings.is_production else str(exc)
        return error_response(500, message, "INTERNAL_ERROR")


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strips non-serializable context (e.g. raised exceptions) from pydantic errors."""
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg", "input")}
        for error in exc.errors()
    ]
