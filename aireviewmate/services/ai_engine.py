"""
AI Review Engine Module

This module handles the AI-powered code review using Google's Gemini API.
It builds the review prompt, calls the model and turns its free-form
answer into a ReviewResult.

Design Decisions:
- The Gemini client is created lazily so a missing API key surfaces as a
  ConfigurationError on first use instead of at import time
- Every call carries an explicit timeout; no automatic retries, callers
  retry deliberately
- JSON repair and normalization live in response_parser so they can be
  tested without the model
"""

from typing import Optional

from google import genai
from google.genai import types

from aireviewmate.config import Settings, get_settings
from aireviewmate.errors import AppError, MalformedResponseError
from aireviewmate.logging_config import get_logger
from aireviewmate.models import ReviewResult
from aireviewmate.services.provider_errors import to_domain_error
from aireviewmate.services.response_parser import (
    extract_json_object,
    fallback_result,
    normalize_review_payload,
)

logger = get_logger(__name__)

PROMPT_TEMPLATE = """You are "The Code Reaper", an ancient, haunted compiler that reviews code and proposes fixes.

Analyze the following {language} code. Then:
1. Identify all real ERRORS, WARNINGS, and SUGGESTIONS.
2. Produce an improved version of the code that resolves them.
3. Return everything as strict, valid JSON (no markdown).

Input:
```{language}
{code}
```

Respond in exactly this JSON shape:
{{
  "errors": [{{"line": <number>, "message": "<specific error>"}}],
  "warnings": [{{"line": <number>, "message": "<specific warning>"}}],
  "suggestions": [{{"line": <number>, "fix": "<specific improvement>"}}],
  "verdict": "<short spooky summary>",
  "curseLevel": <0-100 integer>,
  "updatedCode": "<the fully corrected code>",
  "changes": [{{"line": <number>, "old": "<old line>", "new": "<new line>"}}]
}}

Guidelines:
- Output only JSON, never markdown.
- Keep every array, even when it is empty.
- Use 1-based line numbers (the first line is line 1).
- Keep the original indentation; updatedCode must compile cleanly.
- Use concise, technical messages; the verdict keeps a haunted tone.
- curseLevel runs from 0 (perfect code) to 100 (completely broken):
  each error adds 25-30 points, each warning 10-15, each suggestion 2-5, capped at 100.
- changes lists only lines that were actually modified, with old and new versions.
- updatedCode is the complete corrected code with all fixes applied."""


def build_prompt(code: str, language: str) -> str:
    """Build the review prompt for a piece of code."""
    return PROMPT_TEMPLATE.format(code=code, language=language)


class ReviewEngine:
    """
    AI-powered code review engine.

    Uses Gemini to analyze a single source file and return structured,
    actionable feedback.

    Usage:
        engine = ReviewEngine(settings)
        result = await engine.review_code(code, "python")
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client: Optional[genai.Client] = None

    @property
    def model_name(self) -> str:
        return self.settings.gemini_model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            api_key = self.settings.require_gemini_api_key()
            timeout_ms = int(self.settings.request_timeout_seconds * 1000)
            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=timeout_ms)
            )
        return self._client

    async def _generate(self, prompt: str) -> str:
        """Send the prompt to Gemini and return the raw text answer."""
        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=self.model_name,
            contents=prompt
        )
        return response.text or ""

    async def review_code(self, code: str, language: str) -> ReviewResult:
        """
        Review code using AI.

        Args:
            code: Source code to review
            language: Language identifier for the prompt

        Returns:
            Normalized ReviewResult

        Raises:
            ConfigurationError: If no valid API key is configured
            QuotaExceededError: If Gemini reports a rate or quota limit
            MalformedResponseError: If the answer contains no usable JSON
            UpstreamError: For any other provider failure
        """
        # Fail before building anything when the key is missing
        self.settings.require_gemini_api_key()

        prompt = build_prompt(code, language)

        logger.info(
            "Sending code review request to AI",
            model=self.model_name,
            language=language,
            prompt_length=len(prompt)
        )

        try:
            text = await self._generate(prompt)
        except AppError:
            raise
        except Exception as e:
            error = to_domain_error(e, self.model_name)
            logger.error(
                "Gemini API error",
                model=self.model_name,
                error=str(e),
                error_type=type(e).__name__,
                mapped_to=type(error).__name__
            )
            raise error from e

        if not text.strip():
            raise MalformedResponseError("Empty response from AI")

        logger.debug("Received AI response", response_length=len(text))

        try:
            payload = extract_json_object(text)
        except MalformedResponseError as e:
            logger.error(
                "Failed to parse AI response as JSON",
                error=e.detail,
                response_length=len(text),
                response_head=text[:500],
                fallback=fallback_result().model_dump(by_alias=True)
            )
            raise

        result = normalize_review_payload(payload)

        logger.info(
            "AI review completed",
            errors=len(result.errors),
            warnings=len(result.warnings),
            suggestions=len(result.suggestions),
            curse_level=result.curse_level
        )

        return result


# Singleton instance
_engine_instance: Optional[ReviewEngine] = None


def get_ai_engine(settings: Optional[Settings] = None) -> ReviewEngine:
    """Get the shared ReviewEngine, rebuilt when the settings object changes."""
    global _engine_instance
    settings = settings or get_settings()
    if _engine_instance is None or _engine_instance.settings is not settings:
        _engine_instance = ReviewEngine(settings)
    return _engine_instance
