"""
functions/aggregator/errors.py

`ActionError` is how handlers report a request-level failure. api.py turns
it into an HTTPException with the standard error envelope; nothing below
the HTTP layer imports FastAPI exceptions.
"""

from __future__ import annotations

from typing import Optional

from functions.clients.upstream import UpstreamResult


class ActionError(Exception):
    def __init__(self, status_code: int, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


def configuration_missing(what: str) -> ActionError:
    return ActionError(500, f"{what} not configured", code="CONFIGURATION_MISSING")


def upstream_failure(result: UpstreamResult, default_message: str) -> ActionError:
    """
    Pass the upstream status code through when the upstream answered with an
    error status. No response at all (status 0) or an unexpected non-error
    status becomes a 500.
    """
    if result.status_code >= 400:
        return ActionError(result.status_code, result.error_message(default_message), code="UPSTREAM_ERROR")
    return ActionError(500, default_message, code="UPSTREAM_ERROR")
