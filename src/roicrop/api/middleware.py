"""Request dependencies shared by the ``/api/v1`` routes: settings lookup and API-key check."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from roicrop.config import Settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False, description="Value of ROICROP_API_KEY")


def app_settings(request: Request) -> Settings:
    """Settings stored on the app by the lifespan (or by tests)."""
    settings: Settings = request.app.state.settings
    return settings


def _key_matches(presented: str, expected: str) -> bool:
    return secrets.compare_digest(presented.encode(), expected.encode())


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Guard crop, ROI, strategy and health routes with an optional bearer key.

    The service is open when ``api_key`` is unset. Otherwise uploads are only
    decoded and cropped for callers sending ``Authorization: Bearer <key>``.
    """
    expected = app_settings(request).api_key
    if expected is None:
        return

    if credentials is not None and _key_matches(credentials.credentials, expected):
        return

    logger.info("Rejected %s %s: missing or invalid API key", request.method, request.url.path)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
