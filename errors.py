"""Error taxonomy and the handlers that turn it into JSON responses."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Base exception for all API errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShopError):
    """Raised when request input is malformed or missing."""

    status_code = 400


class AuthenticationError(ShopError):
    """Raised when the bearer token is missing or invalid."""

    status_code = 401


class AuthorizationError(ShopError):
    """Raised when an authenticated caller is not entitled to a resource."""

    status_code = 403


class NotFoundError(ShopError):
    """Raised when a referenced document does not exist."""

    status_code = 404


class ConflictError(ShopError):
    """Raised on duplicates: second review, already-paid order, taken email."""

    status_code = 400


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _format_validation_errors(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Server Error"})
