"""
Services Package

This package contains all service modules for AIReviewMate:
- ai_engine: Gemini review engine
- response_parser: JSON extraction and result normalization
- provider_errors: Gemini error classification
- github_oauth: GitHub OAuth relay
- github_client: GitHub API client and pull request automation
"""

from aireviewmate.services.ai_engine import ReviewEngine, get_ai_engine
from aireviewmate.services.github_client import GitHubAPIError, GitHubClient
from aireviewmate.services.github_oauth import GitHubOAuth, OAuthExchangeError

__all__ = [
    "ReviewEngine",
    "get_ai_engine",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubOAuth",
    "OAuthExchangeError",
]
