"""
Provider Error Classification

Maps failures raised by the Gemini client onto the service's error
taxonomy. Gemini reports most conditions only through message text, so
classification is a substring lookup against PROVIDER_ERROR_PATTERNS.
The wording belongs to the provider and may change without notice; the
mapping is best-effort.
"""

import math
import re
from enum import Enum
from typing import Optional, Sequence, Tuple

from aireviewmate.errors import (
    AppError,
    ConfigurationError,
    QuotaExceededError,
    UpstreamError,
)


class ProviderErrorKind(str, Enum):
    AUTH = "auth"
    QUOTA = "quota"
    RATE_LIMIT = "rate_limit"
    MODEL_NOT_FOUND = "model_not_found"
    UNKNOWN = "unknown"


# Checked top to bottom; the first matching row wins.
PROVIDER_ERROR_PATTERNS: Sequence[Tuple[Tuple[str, ...], ProviderErrorKind]] = (
    (("API key", "GEMINI_API_KEY", "API_KEY_NOT_VALID", "API_KEY_INVALID"),
     ProviderErrorKind.AUTH),
    (("quota", "429", "Too Many Requests", "RESOURCE_EXHAUSTED"),
     ProviderErrorKind.QUOTA),
    (("rate limit", "RATE_LIMIT_EXCEEDED"),
     ProviderErrorKind.RATE_LIMIT),
    (("MODEL_NOT_FOUND", "404 Not Found", "is not found", "model"),
     ProviderErrorKind.MODEL_NOT_FOUND),
)

STATUS_CODE_KINDS = {
    401: ProviderErrorKind.AUTH,
    403: ProviderErrorKind.AUTH,
    404: ProviderErrorKind.MODEL_NOT_FOUND,
    429: ProviderErrorKind.QUOTA,
}

DAILY_QUOTA_MARKERS = ("free_tier_requests", "FreeTier", "limit: 200")

_RETRY_AFTER = re.compile(r"retry in ([\d.]+)\s*s", re.IGNORECASE)


def classify_provider_error(
    message: str,
    status_code: Optional[int] = None
) -> ProviderErrorKind:
    """Return the kind of failure described by a provider error."""
    kind = ProviderErrorKind.UNKNOWN
    for patterns, candidate in PROVIDER_ERROR_PATTERNS:
        if any(p in (message or "") for p in patterns):
            kind = candidate
            break

    # Invalid keys come back as HTTP 400, so a text match on AUTH outranks
    # the status code.
    if kind is ProviderErrorKind.AUTH:
        return kind
    if status_code in STATUS_CODE_KINDS:
        return STATUS_CODE_KINDS[status_code]
    # A server-side outage ("The model is overloaded") mentions the model
    # without it being missing.
    server_error = status_code is not None and status_code >= 500
    if kind is ProviderErrorKind.MODEL_NOT_FOUND and server_error:
        return ProviderErrorKind.UNKNOWN
    return kind


def parse_retry_after(message: str) -> Optional[int]:
    """Extract the 'retry in N s' hint, rounded up to whole seconds."""
    match = _RETRY_AFTER.search(message or "")
    if not match:
        return None
    try:
        return math.ceil(float(match.group(1)))
    except ValueError:
        return None


def to_domain_error(exc: BaseException, model_name: str) -> AppError:
    """
    Translate an exception raised while calling the model.

    Args:
        exc: Exception raised by the provider client
        model_name: Model identifier, used in the not-found message

    Returns:
        The matching AppError; the original message is kept as detail
    """
    if isinstance(exc, AppError):
        return exc

    message = str(exc) or type(exc).__name__
    status_code = getattr(exc, "code", None)
    if not isinstance(status_code, int):
        status_code = None

    kind = classify_provider_error(message, status_code)

    if kind is ProviderErrorKind.AUTH:
        return ConfigurationError(
            "The Reaper could not be summoned… check your API key.",
            detail=message
        )

    if kind is ProviderErrorKind.QUOTA:
        retry_after = parse_retry_after(message)
        if any(marker in message for marker in DAILY_QUOTA_MARKERS):
            if retry_after:
                wait = f" Please wait {retry_after} seconds, or try again tomorrow."
            else:
                wait = (" You have reached the free tier daily limit of 200 requests. "
                        "Please try again tomorrow or upgrade your plan.")
            return QuotaExceededError(
                f"The Reaper has reached its daily quota limit.{wait}",
                retry_after=retry_after,
                detail=message
            )
        if retry_after:
            wait = f" Please wait {retry_after} seconds before trying again."
        else:
            wait = " Please wait a moment and try again."
        return QuotaExceededError(
            f"The Reaper is overwhelmed.{wait}",
            retry_after=retry_after,
            detail=message
        )

    if kind is ProviderErrorKind.RATE_LIMIT:
        return QuotaExceededError(
            "The Reaper is overwhelmed. Please wait a moment and try again.",
            detail=message
        )

    if kind is ProviderErrorKind.MODEL_NOT_FOUND:
        return UpstreamError(
            f'The Gemini model "{model_name}" is not available for your API key. '
            "Please check your API key permissions and the GEMINI_MODEL setting.",
            detail=message
        )

    return UpstreamError(
        f"The Reaper could not be summoned: {message}",
        detail=message
    )
