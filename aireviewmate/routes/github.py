"""
GitHub Endpoints

OAuth login and callback, repository listing and pull request creation.
The OAuth endpoints always finish with a redirect to the front-end so the
user never lands on a raw error page.
"""

from typing import Any, Optional

import httpx
from fastapi import APIRouter, Body, Depends
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import AppError, ValidationError
from aireviewmate.logging_config import get_logger
from aireviewmate.models import PullRequestResult, PullRequestSpec, RepoListResponse
from aireviewmate.routes.deps import get_bearer_token, get_http_transport, get_oauth
from aireviewmate.services.github_client import GitHubAPIError, GitHubClient
from aireviewmate.services.github_oauth import GitHubOAuth

logger = get_logger(__name__)

router = APIRouter(prefix="/api/github", tags=["github"])

REQUIRED_PR_FIELDS = (
    "accessToken", "owner", "repo", "filePath", "improvedCode", "category", "explanation",
)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


@router.get("/login")
async def github_login(oauth: GitHubOAuth = Depends(get_oauth)) -> RedirectResponse:
    """Send the user to GitHub's authorization page."""
    return _redirect(oauth.authorization_url())


@router.get("/callback")
async def github_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    oauth: GitHubOAuth = Depends(get_oauth)
) -> RedirectResponse:
    """
    Finish the OAuth flow.

    Redirects to the front-end with '#token=...' on success and
    '#error=...' otherwise.
    """
    if error and not code:
        # The user declined, or GitHub refused the request
        logger.warning("GitHub OAuth denied", provider_error=error)
        return _redirect(oauth.frontend_redirect(
            error=f"GitHub OAuth failed: {error_description or error}"
        ))

    if not code:
        return _redirect(oauth.frontend_redirect(error="Missing authorization code from GitHub"))

    try:
        token = await oauth.exchange_code(code)
    except AppError as e:
        return _redirect(oauth.frontend_redirect(error=e.message))
    except Exception as e:
        logger.error("GitHub OAuth callback error", error=str(e), error_type=type(e).__name__)
        return _redirect(oauth.frontend_redirect(error=f"GitHub OAuth failed: {e}"))

    return _redirect(oauth.frontend_redirect(token=token))


@router.get("/repos", response_model=RepoListResponse)
async def list_repos(
    access_token: str = Depends(get_bearer_token),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport)
) -> RepoListResponse:
    """List the repositories the token can access."""
    client = GitHubClient(access_token, settings, transport=transport)
    try:
        repos = await client.list_repositories()
    except GitHubAPIError as e:
        e.title = e.title or "Failed to fetch repositories"
        raise
    return RepoListResponse(repos=repos)


def parse_pull_request_spec(payload: Any) -> PullRequestSpec:
    """
    Validate the pull request body.

    Raises:
        ValidationError: If a required field is missing or not a non-empty string
    """
    if not isinstance(payload, dict):
        payload = {}

    missing = [
        name for name in REQUIRED_PR_FIELDS
        if not isinstance(payload.get(name), str) or not payload[name].strip()
    ]
    if missing:
        raise ValidationError(
            f"Required: {', '.join(missing)}",
            title="Missing required fields"
        )

    try:
        return PullRequestSpec.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(str(e).splitlines()[0], title="Invalid pull request") from e


@router.post("/pull-request", response_model=PullRequestResult)
async def create_pull_request(
    payload: Any = Body(default=None),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport)
) -> PullRequestResult:
    """Commit improved code to a new branch and open a pull request."""
    spec = parse_pull_request_spec(payload)

    client = GitHubClient(spec.access_token, settings, transport=transport)
    try:
        return await client.create_pull_request(spec)
    except GitHubAPIError as e:
        e.title = e.title or "Failed to create pull request"
        logger.error(
            "Pull request creation failed",
            owner=spec.owner,
            repo=spec.repo,
            error=e.message,
            upstream_status=e.upstream_status
        )
        raise
