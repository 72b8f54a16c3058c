"""
Data Models Module

This module defines all Pydantic models used throughout the application.
Field names on the wire follow the front-end's camelCase contract; Python
attributes stay snake_case through aliases.

Design Decisions:
- Use Pydantic models for all data transfer objects
- Review results are rebuilt per request and never persisted
- Clear separation between review models and GitHub models
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_VERDICT = "The code has been analyzed by The Code Reaper."


class WireModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Review Models
# =============================================================================

class Finding(WireModel):
    """An error or warning reported against a 1-based line."""
    line: int
    message: str


class Suggestion(WireModel):
    """A suggested improvement for a 1-based line."""
    line: int
    fix: str


class CodeChange(WireModel):
    """A single line rewritten in the updated code."""
    line: int
    old: str
    new: str


class ReviewRequest(WireModel):
    """
    Code submitted for review.

    Attributes:
        code: Source text, non-blank; the route enforces the length limit
        language: Language identifier used in the prompt
    """
    code: str = Field(min_length=1)
    language: str = Field(min_length=1)


class ReviewResult(WireModel):
    """
    Structured critique returned by the review endpoint.

    List fields are always present (possibly empty) and curse_level is
    always within 0..100.
    """
    errors: List[Finding] = Field(default_factory=list)
    warnings: List[Finding] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    verdict: str = Field(default=DEFAULT_VERDICT, min_length=1)
    curse_level: int = Field(default=0, ge=0, le=100, alias="curseLevel")
    updated_code: Optional[str] = Field(default=None, alias="updatedCode")
    changes: List[CodeChange] = Field(default_factory=list)


# =============================================================================
# GitHub Models
# =============================================================================

class RepoSummary(BaseModel):
    """Repository entry returned by GET /api/github/repos."""
    name: str
    full_name: str
    owner: str
    default_branch: str = "main"
    url: str


class RepoListResponse(BaseModel):
    repos: List[RepoSummary] = Field(default_factory=list)


class PullRequestSpec(WireModel):
    """
    Everything needed to open a pull request with an improved file.

    All fields except base_branch are mandatory.
    """
    access_token: str = Field(min_length=1, alias="accessToken")
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    file_path: str = Field(min_length=1, alias="filePath")
    improved_code: str = Field(min_length=1, alias="improvedCode")
    category: str = Field(min_length=1)
    explanation: str = Field(min_length=1)
    base_branch: Optional[str] = Field(default=None, alias="baseBranch")


class PullRequestResult(BaseModel):
    success: bool = True
    url: str
    number: int
    branch: str


class HealthResponse(BaseModel):
    status: str = "ok"
    message: str = "AIReviewMate API is running"
    timestamp: datetime
