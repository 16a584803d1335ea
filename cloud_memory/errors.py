"""
Error taxonomy for the memory backend and its FastAPI exception handlers.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MemoryServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"detail": self.message}


class ValidationError(MemoryServiceError):
    """A required field is missing or carries an invalid value."""

    status_code = 400


class ImageConversionError(ValidationError):
    """The uploaded image could not be decoded or re-encoded."""


class NotFoundError(MemoryServiceError):
    status_code = 404


class AuthorizationError(MemoryServiceError):
    status_code = 401


class StorageError(MemoryServiceError):
    """Object storage or database failure. Keeps the underlying cause."""

    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        return payload


class AggregateUpdateError(MemoryServiceError):
    """Raised internally when the running counters cannot be updated.

    Never reaches a client: the stats service logs and swallows it.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MemoryServiceError)
    async def _handle_service_error(
        request: Request, exc: MemoryServiceError
    ) -> JSONResponse:
        if isinstance(exc, StorageError):
            logger.error(
                "%s %s failed: %s (cause: %r)",
                request.method,
                request.url.path,
                exc.message,
                exc.cause,
            )
        else:
            logger.info(
                "%s %s rejected with %d: %s",
                request.method,
                request.url.path,
                exc.status_code,
                exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in errors
        )
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={"detail": message or "Invalid request"},
        )
