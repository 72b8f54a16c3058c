"""
GitHub API Client Module

This module provides a client for the GitHub REST API acting on behalf of
a user through their OAuth access token. It lists repositories and runs
the branch, commit and pull request sequence that publishes a suggested
fix.

Design Decisions:
- Use httpx for async HTTP requests with an explicit timeout
- No retries and no rollback: a failed step is reported, never compensated
- The token is passed per instance and never logged or stored
"""

import base64
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import AuthError, ConflictError, UpstreamError
from aireviewmate.logging_config import get_logger
from aireviewmate.models import PullRequestResult, PullRequestSpec, RepoSummary

logger = get_logger(__name__)

BRANCH_PREFIX = "aireviewmate-update-"
USER_AGENT = "AIReviewMate"


class GitHubAPIError(UpstreamError):
    """Custom exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        title: Optional[str] = None,
        response_body: Optional[str] = None
    ):
        super().__init__(message, title=title)
        self.upstream_status = status_code
        self.response_body = response_body


def new_branch_name() -> str:
    """Branch name unique to the millisecond."""
    return f"{BRANCH_PREFIX}{int(time.time() * 1000)}"


def expired_token_error() -> AuthError:
    return AuthError("Please re-authenticate with GitHub", title="Invalid or expired token")


class GitHubClient:
    """
    Async GitHub API client for a single user token.

    Usage:
        client = GitHubClient(access_token, settings)
        repos = await client.list_repositories()
        result = await client.create_pull_request(spec)
    """

    def __init__(
        self,
        access_token: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self._access_token = access_token
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make an authenticated request to the GitHub API.

        Status codes are left to the caller, which knows what each step
        tolerates. Only transport failures raise here.

        Raises:
            GitHubAPIError: If the request could not be completed
        """
        url = f"{self.settings.github_api_base}{endpoint}"
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self._get_headers(),
                    **kwargs
                )
        except httpx.HTTPError as e:
            logger.error("GitHub request failed", method=method, endpoint=endpoint, error=str(e))
            raise GitHubAPIError(f"GitHub request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "GitHub API error",
                method=method,
                endpoint=endpoint,
                status_code=response.status_code,
                error=response.text[:500]
            )
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return "Unknown error"
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return "Unknown error"

    # =========================================================================
    # Repositories
    # =========================================================================
    async def list_repositories(self) -> List[RepoSummary]:
        """
        List repositories the user can access.

        Raises:
            AuthError: If the token is invalid or expired
            GitHubAPIError: For any other GitHub failure
        """
        response = await self._request("GET", "/user/repos")

        if response.status_code == 401:
            raise expired_token_error()
        if not response.is_success:
            raise GitHubAPIError(
                f"GitHub API responded with status {response.status_code}",
                status_code=response.status_code,
                title="Failed to fetch repositories",
                response_body=response.text
            )

        repos = [
            RepoSummary(
                name=repo["name"],
                full_name=repo["full_name"],
                owner=repo["owner"]["login"],
                default_branch=repo.get("default_branch") or "main",
                url=repo["html_url"],
            )
            for repo in response.json()
        ]

        logger.info("Fetched repositories", total_repos=len(repos))
        return repos

    # =========================================================================
    # Pull request steps
    # =========================================================================
    async def get_branch_sha(self, owner: str, repo: str, branch: str) -> str:
        """Step a: SHA of the head commit of a branch."""
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/git/refs/heads/{quote(branch, safe='/')}"
        )
        if response.status_code == 401:
            raise expired_token_error()
        if not response.is_success:
            raise self._step_failure(f"Failed to fetch {branch} branch", response)
        return response.json()["object"]["sha"]

    async def create_branch(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """Step b: create a branch pointing at a commit."""
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha}
        )
        if response.status_code == 409:
            raise ConflictError(
                "A branch with this name already exists. Please try again.",
                title="Branch conflict"
            )
        if not response.is_success:
            raise self._step_failure("Failed to create branch", response)

    async def get_file_sha(self, owner: str, repo: str, path: str, ref: str) -> str:
        """Step c: blob SHA of the file being replaced."""
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}",
            params={"ref": ref}
        )
        if not response.is_success:
            raise self._step_failure("Failed to fetch file", response)
        data = response.json()
        if not isinstance(data, dict) or "sha" not in data:
            raise GitHubAPIError(
                f"Failed to fetch file: {path} is not a file",
                title="Failed to create pull request"
            )
        return data["sha"]

    async def commit_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        file_sha: str,
        branch: str,
        message: str
    ) -> str:
        """Step d: commit new file content; file_sha guards against concurrent edits."""
        response = await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}",
            json={
                "message": message,
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "sha": file_sha,
                "branch": branch,
            }
        )
        if not response.is_success:
            raise self._step_failure("Failed to commit code", response)
        return response.json().get("commit", {}).get("sha", "")

    async def open_pull_request(
        self,
        owner: str,
        repo: str,
        head: str,
        base: str,
        title: str,
        body: str
    ) -> Dict[str, Any]:
        """Step e: open the pull request."""
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body}
        )
        if not response.is_success:
            raise GitHubAPIError(
                f"Failed to create PR: {response.status_code} - {self._error_message(response)}",
                status_code=response.status_code,
                title="Failed to create pull request",
                response_body=response.text
            )
        return response.json()

    def _step_failure(self, step: str, response: httpx.Response) -> GitHubAPIError:
        return GitHubAPIError(
            f"{step}: {response.status_code}",
            status_code=response.status_code,
            title="Failed to create pull request",
            response_body=response.text
        )

    async def create_pull_request(self, spec: PullRequestSpec) -> PullRequestResult:
        """
        Publish improved code as a pull request.

        Runs five dependent steps: read the base branch head, create a
        branch, read the file's blob SHA, commit the new content and open
        the pull request. A failure after the branch exists leaves that
        branch in place; the error message names it.

        Raises:
            AuthError: If the token is rejected when reading the base branch
            ConflictError: If the branch name is already taken
            GitHubAPIError: If any step fails
        """
        owner, repo = spec.owner, spec.repo
        base = spec.base_branch or self.settings.default_base_branch
        branch = new_branch_name()

        logger.info(
            "Creating pull request",
            owner=owner,
            repo=repo,
            base=base,
            branch=branch,
            file_path=spec.file_path
        )

        base_sha = await self.get_branch_sha(owner, repo, base)
        await self.create_branch(owner, repo, branch, base_sha)

        try:
            file_sha = await self.get_file_sha(owner, repo, spec.file_path, base)
            await self.commit_file(
                owner,
                repo,
                spec.file_path,
                spec.improved_code,
                file_sha,
                branch,
                message=f"AIReviewMate: {spec.category}"
            )
            pr = await self.open_pull_request(
                owner,
                repo,
                head=branch,
                base=base,
                title=f"AI Review Suggestion: {spec.category}",
                body=spec.explanation
            )
        except GitHubAPIError as e:
            logger.warning("Pull request sequence aborted, branch left behind",
                           owner=owner, repo=repo, branch=branch, error=e.message)
            e.message = f"{e.message} (branch {branch} was left in place)"
            raise

        logger.info(
            "Pull request created",
            owner=owner,
            repo=repo,
            number=pr.get("number"),
            branch=branch
        )

        return PullRequestResult(
            success=True,
            url=pr["html_url"],
            number=pr["number"],
            branch=branch
        )
