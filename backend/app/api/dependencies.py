"""
FastAPI dependencies: the service container and shared-secret checks.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, Request

from app.core.errors import Unauthorized
from app.services.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _secret_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Bearer token check. The endpoint is closed when no secret is configured."""
    expected = container.settings.CRON_SECRET
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):]
    if not _secret_matches(token, expected):
        raise Unauthorized("Invalid or missing cron credentials")


def verify_admin_key(
    x_admin_key: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> None:
    if not _secret_matches(x_admin_key, container.settings.ADMIN_API_KEY):
        raise Unauthorized("Invalid or missing admin key")
