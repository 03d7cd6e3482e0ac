"""
Global Error Handling

Application-wide exception handlers for the portal API.

HTTP errors raised by dependencies (such as a rejected bearer token) and
request validation failures are answered with the standard
`{isSuccess, message}` envelope instead of FastAPI's `{"detail": ...}`.
Unexpected failures are logged with their full stack trace and answered
with the standard envelope carrying a generic message; no exception detail
reaches the client.
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("portal.errors")

INTERNAL_ERROR_MESSAGE = "Internal server error"
INVALID_REQUEST_MESSAGE = "Invalid request parameters."


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Wrap an `HTTPException` in the envelope, keeping its status and headers.
    """
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"isSuccess": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.info(
        "Rejected request %s %s: %s",
        request.method,
        request.url.path,
        exc.errors(),
    )
    return JSONResponse(
        status_code=422,
        content={"isSuccess": False, "message": INVALID_REQUEST_MESSAGE},
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler registered as the final safety net.

    Parameters
    ----------
    request : Request
        The request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        HTTP 500 with `{"isSuccess": false, "message": "Internal server error"}`.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "isSuccess": False,
        "message": INTERNAL_ERROR_MESSAGE,
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
