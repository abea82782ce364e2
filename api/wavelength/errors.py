"""Service error taxonomy and the handler that renders it over HTTP."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class AuthorizationError(ServiceError):
    status_code = 401
    code = "unauthorized"


class ConflictError(ServiceError):
    status_code = 400
    code = "conflict"


class CorruptQuizError(ServiceError):
    """Stored quiz document exists but cannot be decoded."""

    status_code = 500
    code = "quiz_corrupt"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error("[errors] %s %s -> %s (%s)", request.method, request.url.path, exc.status_code, exc.code)
        else:
            logger.info("[errors] %s %s -> %s (%s): %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})
