"""
GitHub OAuth Relay

Exchanges an OAuth authorization code for a user access token and builds
the redirects that hand the outcome back to the front-end. The token is
relayed once in the URL fragment and never stored server-side.
"""

from typing import Optional
from urllib.parse import quote, urlencode

import httpx

from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import UpstreamError
from aireviewmate.logging_config import get_logger

logger = get_logger(__name__)

OAUTH_SCOPE = "repo"


class OAuthExchangeError(UpstreamError):
    """Token exchange failed; the message is safe to show the user."""


def describe_oauth_failure(description: str) -> str:
    """Turn GitHub's error_description into an actionable message."""
    if "client_id" in description or "client_secret" in description:
        return ("GitHub OAuth configuration error: Please check your GITHUB_CLIENT_ID "
                "and GITHUB_CLIENT_SECRET in your .env file.")
    if "redirect_uri" in description:
        return ("GitHub OAuth redirect URI mismatch: Please ensure GITHUB_REDIRECT_URI "
                "matches your GitHub app settings.")
    return f"GitHub OAuth failed: {description}"


class GitHubOAuth:
    """
    OAuth App flow against github.com.

    Usage:
        oauth = GitHubOAuth(settings)
        url = oauth.authorization_url()
        token = await oauth.exchange_code(code)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def authorization_url(self) -> str:
        """
        Build the GitHub authorization URL.

        Raises:
            ConfigurationError: If the client id or redirect URI is unset
        """
        self.settings.require_oauth_login()
        params = urlencode({
            "client_id": self.settings.github_client_id,
            "redirect_uri": self.settings.github_redirect_uri,
            "scope": OAUTH_SCOPE,
            "allow_signup": "true",
        })
        return f"{self.settings.github_oauth_base}/authorize?{params}"

    async def exchange_code(self, code: str) -> str:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Code GitHub passed to the callback

        Returns:
            The user access token

        Raises:
            ConfigurationError: If the client id or secret is unset
            OAuthExchangeError: If GitHub rejects the exchange
        """
        self.settings.require_oauth_exchange()

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.settings.github_oauth_base}/access_token",
                    headers={"Accept": "application/json"},
                    json={
                        "client_id": self.settings.github_client_id,
                        "client_secret": self.settings.github_client_secret,
                        "code": code,
                    }
                )
        except httpx.HTTPError as e:
            logger.error("GitHub OAuth request failed", error=str(e))
            raise OAuthExchangeError(f"GitHub OAuth failed: {e}") from e

        if not response.is_success:
            logger.error(
                "GitHub OAuth token exchange failed",
                status_code=response.status_code,
                body=response.text[:500]
            )
            raise OAuthExchangeError(
                f"GitHub OAuth failed: {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        access_token = data.get("access_token")
        if not access_token or data.get("error"):
            description = (
                data.get("error_description") or data.get("error")
                or "No access token received"
            )
            logger.error(
                "GitHub OAuth error",
                provider_error=data.get("error"),
                description=description
            )
            raise OAuthExchangeError(describe_oauth_failure(description))

        logger.info("GitHub OAuth token exchanged")
        return access_token

    def frontend_redirect(
        self,
        token: Optional[str] = None,
        error: Optional[str] = None
    ) -> str:
        """
        URL of the front-end with the outcome in the fragment.

        Fragments are never sent to servers, so the token stays out of
        access logs and caches.
        """
        if token is not None:
            return f"{self.settings.client_url}#token={quote(token, safe='')}"
        return f"{self.settings.client_url}#error={quote(error or 'GitHub OAuth failed', safe='')}"
