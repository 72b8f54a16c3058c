"""
Review Endpoint

POST /api/review validates the submitted code, hands it to the review
engine and always answers with a well-formed ReviewResult or a structured
error body.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import (
    AppError,
    ConfigurationError,
    QuotaExceededError,
    UpstreamError,
    ValidationError,
)
from aireviewmate.logging_config import get_logger
from aireviewmate.models import ReviewRequest, ReviewResult
from aireviewmate.routes.deps import get_review_engine
from aireviewmate.services.ai_engine import ReviewEngine
from aireviewmate.services.provider_errors import to_domain_error
from aireviewmate.services.response_parser import ensure_review_result

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["review"])


def validate_review_request(payload: Any, max_code_length: int) -> ReviewRequest:
    """
    Check the request body before any external call is made.

    Raises:
        ValidationError: On a missing, blank or oversized field
    """
    if not isinstance(payload, dict):
        payload = {}

    code = payload.get("code")
    language = payload.get("language")

    if not isinstance(code, str) or not code.strip():
        raise ValidationError("Code is required and cannot be empty")

    if not isinstance(language, str) or not language.strip():
        raise ValidationError("Language is required")

    if len(code) > max_code_length:
        raise ValidationError(f"Code is too long (maximum {max_code_length:,} characters)")

    return ReviewRequest(code=code, language=language.strip())


def as_review_error(exc: Exception, model_name: str) -> AppError:
    """
    Map a review failure to its HTTP-facing error.

    Credential and quota failures keep their classification; anything else
    is reported with its raw message.
    """
    if isinstance(exc, AppError):
        return exc
    error = to_domain_error(exc, model_name)
    if isinstance(error, (ConfigurationError, QuotaExceededError)):
        return error
    return UpstreamError(str(exc) or "An error occurred while reviewing the code.")


@router.post("/review", response_model=ReviewResult)
async def review_code(
    request: Request,
    payload: Any = Body(default=None),
    settings: Settings = Depends(get_settings),
    engine: ReviewEngine = Depends(get_review_engine)
) -> ReviewResult:
    """
    Review a piece of code.

    Returns:
        ReviewResult serialized with camelCase field names
    """
    review_request = validate_review_request(payload, settings.max_code_length)

    logger.info(
        "Review request received",
        client=request.client.host if request.client else "unknown",
        language=review_request.language,
        code_length=len(review_request.code)
    )

    try:
        raw_result = await engine.review_code(review_request.code, review_request.language)
    except Exception as e:
        error = as_review_error(e, settings.gemini_model)
        logger.error(
            "Review failed",
            error=error.message,
            error_type=type(error).__name__,
            status_code=error.status_code
        )
        if error is e:
            raise
        raise error from e

    result = ensure_review_result(raw_result)

    logger.info(
        "Review completed",
        errors=len(result.errors),
        warnings=len(result.warnings),
        suggestions=len(result.suggestions),
        curse_level=result.curse_level
    )

    return result
