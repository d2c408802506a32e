"""
Centralized error handling helpers.

Goal: every failure that reaches the console (backend unreachable, malformed
push frames, rejected configuration) ends up as one readable log line instead
of escaping the update entry points.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from dashboard.config import settings

logger = logging.getLogger(__name__)


class DashboardError(Exception):
    """Base class for console errors."""


class MalformedMessageError(DashboardError):
    """An inbound push/poll payload could not be parsed."""


class ConfigValidationError(DashboardError):
    """A configuration was rejected before being sent to the backend."""


@dataclass(frozen=True, slots=True)
class ApiError:
    code: str
    message: str
    hint: str | None = None
    debug: str | None = None


def _maybe_debug(exc: BaseException) -> str | None:
    if settings.APP_DEBUG:
        return repr(exc)
    return None


def classify_error(exc: BaseException) -> ApiError:
    """
    Classify a failure raised while talking to the backend.

    httpx raises a small hierarchy of transport errors; anything that parses
    but does not validate is reported as a malformed response.
    """
    if isinstance(exc, httpx.TimeoutException):
        return ApiError(
            code="BACKEND_TIMEOUT",
            message="Backend did not respond in time.",
            hint="Check that the benchmark server is running and not overloaded.",
            debug=_maybe_debug(exc),
        )
    if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
        return ApiError(
            code="BACKEND_UNREACHABLE",
            message="Backend is unreachable.",
            hint="Check the console base URL and that the server is up.",
            debug=_maybe_debug(exc),
        )
    if isinstance(exc, httpx.HTTPStatusError):
        return ApiError(
            code="BACKEND_HTTP_ERROR",
            message=f"Backend returned HTTP {exc.response.status_code}.",
            debug=_maybe_debug(exc),
        )
    if isinstance(exc, (ValidationError, json.JSONDecodeError, MalformedMessageError)):
        return ApiError(
            code="MALFORMED_RESPONSE",
            message="Backend sent a payload the console could not read.",
            debug=_maybe_debug(exc),
        )
    return ApiError(
        code="INTERNAL_ERROR",
        message=str(exc) or exc.__class__.__name__,
        debug=_maybe_debug(exc),
    )


def describe_failure(operation: str, exc: BaseException) -> str:
    """
    Build the single log line reported for a failed operation.
    """
    err = classify_error(exc)
    logger.debug("%s failed (%s): %r", operation, err.code, exc)
    if err.code == "INTERNAL_ERROR":
        text = f"{operation}: {err.message}"
    else:
        text = f"{operation}: {err.message} ({err.code})"
    if err.debug:
        text = f"{text} [{err.debug}]"
    return text
