"""
functions/utils/auth.py

Shared-secret cookie authorization for the dashboard's write endpoints.

The operator logs in once with the admin password (settings.admin_password)
and receives the cookie `devops-auth=authenticated`. Any request carrying
that cookie is authorized. There are no users, sessions or tokens; the
cookie value is a fixed marker.

Handlers only talk to the `Authorizer` protocol, so a stronger scheme can
replace `CookieAuthorizer` without touching them.
"""

from __future__ import annotations

import hmac
from typing import Protocol

import structlog
from fastapi import Request, Response

from functions.utils.settings import Settings

logger = structlog.get_logger(__name__)

AUTH_COOKIE = "devops-auth"
AUTH_COOKIE_VALUE = "authenticated"
AUTH_COOKIE_MAX_AGE = 60 * 60 * 24 * 7


class AdminSecretMissing(RuntimeError):
    pass


class Authorizer(Protocol):
    def is_authorized(self, request: Request) -> bool: ...

    def verify_password(self, password: str) -> bool: ...

    def grant(self, response: Response) -> None: ...


class CookieAuthorizer:
    def __init__(self, settings: Settings) -> None:
        self._password = settings.admin_password
        self._secure = settings.environment == "production"

    def is_authorized(self, request: Request) -> bool:
        return request.cookies.get(AUTH_COOKIE) == AUTH_COOKIE_VALUE

    def verify_password(self, password: str) -> bool:
        """
        Compare against the configured admin password.

        Raises AdminSecretMissing when no password is configured, so the
        login endpoint can answer 500 instead of 401.
        """
        if not self._password:
            logger.error("admin_password_not_configured")
            raise AdminSecretMissing("Server configuration error")

        matched = hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        if not matched:
            logger.info("login_rejected")
        return matched

    def grant(self, response: Response) -> None:
        response.set_cookie(
            AUTH_COOKIE,
            AUTH_COOKIE_VALUE,
            max_age=AUTH_COOKIE_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self._secure,
        )
