"""Error handlers mapping pipeline errors onto HTTP responses.

Every error body has the shape ``{"error": {"code", "message"}}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from foundry.core.exceptions import ConnectorFailure, FoundryError, NotEligible, NotFoundError, ValidationFailure

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[FoundryError], int] = {
    NotFoundError: 404,
    ValidationFailure: 422,
    NotEligible: 400,
    ConnectorFailure: 502,
}


def status_for_error(exc: FoundryError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def register_error_handlers(app: FastAPI) -> None:
    """Install the pipeline error handlers on an app."""

    @app.exception_handler(FoundryError)
    async def foundry_error_handler(request: Request, exc: FoundryError) -> JSONResponse:
        status_code = status_for_error(exc)
        if status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        else:
            logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)  # Intentionally broad: top-level global error handler
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
        )
