"""
Route Dependencies

FastAPI dependency providers. Tests replace these through
app.dependency_overrides.
"""

from typing import Optional

import httpx
from fastapi import Depends, Header

from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import AuthError
from aireviewmate.services.ai_engine import ReviewEngine, get_ai_engine
from aireviewmate.services.github_oauth import GitHubOAuth


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound GitHub calls; None means the network."""
    return None


def get_review_engine(settings: Settings = Depends(get_settings)) -> ReviewEngine:
    return get_ai_engine(settings)


def get_oauth(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport)
) -> GitHubOAuth:
    return GitHubOAuth(settings, transport=transport)


def get_bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    """
    Extract the GitHub token from an 'Authorization: Bearer <token>' header.

    Raises:
        AuthError: If the header is absent or not a bearer credential
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError(
            "Authorization header with Bearer token is required",
            title="Missing access token"
        )
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError(
            "Authorization header with Bearer token is required",
            title="Missing access token"
        )
    return token
