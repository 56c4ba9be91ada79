#!/usr/bin/env python3
"""
Error handlers for the web application.

Matching errors are mapped to HTTP status codes and rendered with the
common {"success": false, "error": ..., "type": ...} envelope.
"""

import logging
import math
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.exceptions import (
    Backpressure,
    InvalidCriteria,
    MatchingException,
    NotFound,
    ScorerTimeout,
    StatusConflict,
)

logger = logging.getLogger(__name__)

STATUS_CODES = (
    (InvalidCriteria, 400),
    (NotFound, 404),
    (StatusConflict, 409),
    (Backpressure, 429),
    (ScorerTimeout, 504),
)


def _error_response(status_code: int, error, error_type: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "type": error_type
        },
        headers=headers
    )


def status_code_for(exc: MatchingException) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


async def matching_exception_handler(
    request: Request,
    exc: MatchingException
) -> JSONResponse:
    """
    Handle matching engine exceptions.

    Args:
        request: The FastAPI request.
        exc: The matching exception.

    Returns:
        JSONResponse with error details.
    """
    status_code = status_code_for(exc)
    if status_code >= 500 and status_code != 504:
        logger.error(f"Matching error in {request.url.path}: {exc}", exc_info=True)
    else:
        logger.warning(f"Matching error in {request.url.path}: {exc}")

    headers = None
    if isinstance(exc, Backpressure) and exc.retry_after_seconds:
        headers = {"Retry-After": str(int(math.ceil(exc.retry_after_seconds)))}

    return _error_response(status_code, str(exc), exc.__class__.__name__, headers)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Request bodies that fail validation are invalid criteria."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return _error_response(400, "; ".join(messages), InvalidCriteria.__name__)


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions with consistent format.

    Args:
        request: The FastAPI request.
        exc: The HTTP exception.

    Returns:
        JSONResponse with error details.
    """
    return _error_response(exc.status_code, exc.detail, "HTTPException")


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: The FastAPI request.
        exc: The exception.

    Returns:
        JSONResponse with error details.
    """
    logger.exception(f"Unexpected error in {request.url.path}")
    return _error_response(500, "Internal server error", "InternalError")
