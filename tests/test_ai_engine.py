"""
Tests for the AI Review Engine

The Gemini call is replaced per test; everything else runs for real.
"""

import pytest

from aireviewmate.config import Settings
from aireviewmate.errors import (
    ConfigurationError,
    MalformedResponseError,
    QuotaExceededError,
    UpstreamError,
)
from aireviewmate.models import DEFAULT_VERDICT
from aireviewmate.services.ai_engine import ReviewEngine, build_prompt, get_ai_engine


def make_engine(settings: Settings, reply=None, error=None) -> ReviewEngine:
    engine = ReviewEngine(settings)
    prompts = []

    async def fake_generate(prompt: str) -> str:
        prompts.append(prompt)
        if error is not None:
            raise error
        return reply

    engine._generate = fake_generate
    engine.prompts = prompts
    return engine


class TestBuildPrompt:

    def test_embeds_code_and_language(self):
        prompt = build_prompt("print('hi')", "python")

        assert "```python\nprint('hi')\n```" in prompt
        assert "Analyze the following python code" in prompt

    def test_names_every_field(self):
        prompt = build_prompt("x", "go")
        for field in ("errors", "warnings", "suggestions", "verdict",
                      "curseLevel", "updatedCode", "changes"):
            assert f'"{field}"' in prompt
        assert "1-based" in prompt

    def test_deterministic(self):
        assert build_prompt("a = 1", "python") == build_prompt("a = 1", "python")

    def test_braces_in_code_survive(self):
        assert "{x: 1}" in build_prompt("const o = {x: 1};", "javascript")


class TestReviewEngine:
    """Tests for ReviewEngine.review_code."""

    async def test_returns_normalized_result(self, settings):
        engine = make_engine(settings, reply=(
            '```json\n{"errors": [{"line": 1, "message": "missing colon"}], '
            '"warnings": [], "suggestions": [], "verdict": "Doomed.", "curseLevel": 30}\n```'
        ))

        result = await engine.review_code("def f()\n    pass", "python")

        assert result.errors[0].message == "missing colon"
        assert result.verdict == "Doomed."
        assert result.curse_level == 30
        assert result.changes == []
        assert len(engine.prompts) == 1

    async def test_backfills_missing_fields(self, settings):
        engine = make_engine(settings, reply='{"warnings": [{"line": 2, "message": "w"}]}')

        result = await engine.review_code("x = 1", "python")

        assert result.verdict == DEFAULT_VERDICT
        assert result.curse_level == 10
        assert result.updated_code is None

    async def test_clamps_curse_level(self, settings):
        engine = make_engine(settings, reply='{"verdict": "v", "curseLevel": 250}')
        result = await engine.review_code("x = 1", "python")
        assert result.curse_level == 100

    async def test_missing_api_key(self):
        settings = Settings(_env_file=None, gemini_api_key="your_gemini_api_key_here")
        engine = make_engine(settings, reply="{}")

        with pytest.raises(ConfigurationError):
            await engine.review_code("x = 1", "python")
        assert engine.prompts == []

    async def test_unparsable_output(self, settings):
        engine = make_engine(settings, reply="The spirits are silent today.")

        with pytest.raises(MalformedResponseError):
            await engine.review_code("x = 1", "python")

    async def test_empty_output(self, settings):
        engine = make_engine(settings, reply="   ")

        with pytest.raises(MalformedResponseError):
            await engine.review_code("x = 1", "python")

    async def test_quota_error_is_mapped(self, settings):
        engine = make_engine(
            settings,
            error=RuntimeError("429 RESOURCE_EXHAUSTED. Please retry in 12.5s.")
        )

        with pytest.raises(QuotaExceededError) as exc_info:
            await engine.review_code("x = 1", "python")
        assert exc_info.value.retry_after == 13

    async def test_unknown_error_is_wrapped(self, settings):
        engine = make_engine(settings, error=RuntimeError("connection reset"))

        with pytest.raises(UpstreamError) as exc_info:
            await engine.review_code("x = 1", "python")
        assert "connection reset" in exc_info.value.message


class TestGetAiEngine:

    def test_reuses_instance_for_same_settings(self, settings):
        assert get_ai_engine(settings) is get_ai_engine(settings)

    def test_rebuilds_for_new_settings(self, settings):
        first = get_ai_engine(settings)
        other = settings.model_copy(update={"gemini_model": "gemini-1.5-pro"})
        second = get_ai_engine(other)

        assert second is not first
        assert second.model_name == "gemini-1.5-pro"
