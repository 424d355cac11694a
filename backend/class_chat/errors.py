"""Service exceptions and their HTTP translation."""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_payload(error: str, type_: str, code: Optional[str] = None, details: Any = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": error, "code": code, "type": type_}
    if details is not None:
        payload["details"] = details
    return payload


class ChatServiceError(Exception):
    """Base exception for the chat service.

    Raised from service methods; the HTTP layer translates it through the
    handlers registered by ``register_exception_handlers`` and the WebSocket
    handler turns it into an ``error`` event.
    """

    status_code: int = 400
    default_code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code if code is not None else self.default_code
        super().__init__(message)


class NotFoundError(ChatServiceError):
    """Referenced class request does not exist."""

    status_code = 404
    default_code = "not_found"


class AuthorizationError(ChatServiceError):
    """Actor does not own the resource (or it does not exist, for messages)."""

    status_code = 403
    default_code = "forbidden"


class ConflictError(ChatServiceError):
    """Student already joined the class request."""

    status_code = 400
    default_code = "already_joined"


class StoreError(ChatServiceError):
    """Persistence failed; the previously committed record is unchanged."""

    status_code = 500
    default_code = "store_error"


def register_exception_handlers(app: FastAPI) -> None:
    """Register the service's exception handlers on a FastAPI app."""

    @app.exception_handler(ChatServiceError)
    async def _service_exception_handler(_request: Request, exc: ChatServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc.message, exc.__class__.__name__, code=exc.code),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=error_payload(
                "Validation error",
                exc.__class__.__name__,
                code="validation_error",
                details=jsonable_encoder(exc.errors()),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = getattr(exc, "detail", None)
        if isinstance(detail, str):
            return JSONResponse(
                status_code=exc.status_code,
                content=error_payload(detail, exc.__class__.__name__, code="http_exception"),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(
                "Request failed", exc.__class__.__name__, code="http_exception", details=detail
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content=error_payload("Internal server error", "InternalServerError", code="internal_error"),
        )
