"""
Error Taxonomy

Every failure the API reports is one of the exceptions below. Each carries
the HTTP status it maps to, so route handlers raise and the exception
handler in aireviewmate.main renders.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors that are reported to API callers."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        title: Optional[str] = None,
        detail: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.title = title
        # Raw upstream message, kept for logs and for the response body
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        """Render the JSON error body."""
        if self.title:
            body: Dict[str, Any] = {"error": self.title, "message": self.message}
        else:
            body = {"error": self.message}
        if self.detail and self.detail != self.message:
            body["detail"] = self.detail
        return body


class ValidationError(AppError):
    """Caller input is malformed."""
    status_code = 400


class AuthError(AppError):
    """Bearer credential is missing, invalid or expired."""
    status_code = 401


class ConflictError(AppError):
    """A remote resource with the same name already exists."""
    status_code = 409


class QuotaExceededError(AppError):
    """The model provider reported a rate or quota limit."""
    status_code = 429

    def __init__(
        self,
        message: str,
        retry_after: Optional[int] = None,
        title: Optional[str] = None,
        detail: Optional[str] = None
    ):
        super().__init__(message, title=title, detail=detail)
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        return body


class ConfigurationError(AppError):
    """A required credential or setting is absent."""
    status_code = 500


class UpstreamError(AppError):
    """A third-party service failed."""
    status_code = 500


class MalformedResponseError(AppError):
    """Model output could not be parsed after every repair attempt."""
    status_code = 500
