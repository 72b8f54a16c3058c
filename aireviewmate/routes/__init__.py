"""
Routes Package

This package contains the HTTP route handlers:
- review: POST /api/review
- github: OAuth relay, repository listing and pull request creation
- deps: shared FastAPI dependencies
"""

from aireviewmate.routes.github import router as github_router
from aireviewmate.routes.review import router as review_router

__all__ = ["github_router", "review_router"]
