"""Tests for the completion API adapter."""

import pytest
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models.groq import GroqModel

from src.models.chat_models import Message
from src.services.chat_errors import (
    PayloadTooLargeError,
    UpstreamError,
    UpstreamRateLimitedError,
)
from src.services.completion_service import (
    CompletionService,
    build_model,
    classify_upstream_error,
    get_completion_service,
    load_system_prompt,
)


def _flatten(messages):
    """(part_kind, content) for every part across a PydanticAI message list."""
    return [(part.part_kind, part.content) for message in messages for part in message.parts]


class TestCompletionService:
    """Test suite for CompletionService.complete()."""

    @pytest.mark.asyncio
    async def test_returns_model_text(self, make_completion_service, mock_logfire):
        service = make_completion_service(lambda prompt: f"Echo: {prompt}")

        result = await service.complete([], "What is on example.com?")

        assert result == "Echo: What is on example.com?"

    @pytest.mark.asyncio
    async def test_forwards_last_three_history_messages(
        self, make_completion_service, mock_logfire
    ):
        service = make_completion_service(lambda prompt: "ok")
        history = [
            Message(role="user", content="first question"),
            Message(role="assistant", content="first answer"),
            Message(role="user", content="second question"),
            Message(role="assistant", content="second answer"),
            Message(role="user", content="third question"),
        ]

        await service.complete(history, "new prompt")

        parts = [p for p in _flatten(service.calls[0]) if p[0] in ("user-prompt", "text")]
        assert parts == [
            ("user-prompt", "second question"),
            ("text", "second answer"),
            ("user-prompt", "third question"),
            ("user-prompt", "new prompt"),
        ]

    @pytest.mark.asyncio
    async def test_truncates_history_messages(self, make_completion_service, mock_logfire):
        service = make_completion_service(lambda prompt: "ok")
        history = [Message(role="assistant", content="x" * 5000)]

        await service.complete(history, "prompt")

        texts = [content for kind, content in _flatten(service.calls[0]) if kind == "text"]
        assert texts == ["x" * 1000]

    @pytest.mark.asyncio
    async def test_does_not_truncate_current_prompt(self, make_completion_service, mock_logfire):
        service = make_completion_service(lambda prompt: str(len(prompt)))

        assert await service.complete([], "y" * 5000) == "5000"

    @pytest.mark.asyncio
    async def test_extra_system_prompt(self, make_completion_service, mock_logfire):
        service = make_completion_service(lambda prompt: "ok")

        await service.complete([], "prompt", system_prompt="Answer in French.")

        assert ("system-prompt", "Answer in French.") in _flatten(service.calls[0])

    @pytest.mark.asyncio
    async def test_payload_too_large(self, make_completion_service, mock_logfire):
        def reply(prompt):
            raise ModelHTTPError(status_code=413, model_name="test-model", body="Request too large")

        service = make_completion_service(reply)

        with pytest.raises(PayloadTooLargeError):
            await service.complete([], "prompt")
        mock_logfire.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_upstream_rate_limited(self, make_completion_service, mock_logfire):
        def reply(prompt):
            raise ModelHTTPError(
                status_code=429, model_name="test-model", body={"code": "rate_limit_exceeded"}
            )

        service = make_completion_service(reply)

        with pytest.raises(UpstreamRateLimitedError):
            await service.complete([], "prompt")

    @pytest.mark.asyncio
    async def test_other_upstream_error(self, make_completion_service, mock_logfire):
        def reply(prompt):
            raise ModelHTTPError(status_code=500, model_name="test-model", body=None)

        service = make_completion_service(reply)

        with pytest.raises(UpstreamError) as exc_info:
            await service.complete([], "prompt")
        assert not isinstance(exc_info.value, UpstreamRateLimitedError)

    @pytest.mark.asyncio
    async def test_non_http_errors_propagate(self, make_completion_service, mock_logfire):
        def reply(prompt):
            raise RuntimeError("bug in caller")

        service = make_completion_service(reply)

        with pytest.raises(RuntimeError):
            await service.complete([], "prompt")


class TestClassifyUpstreamError:
    """Tests for classify_upstream_error()."""

    def test_status_413(self):
        error = ModelHTTPError(status_code=413, model_name="m", body=None)

        assert isinstance(classify_upstream_error(error), PayloadTooLargeError)

    def test_too_large_text(self):
        error = UnexpectedModelBehavior("Request Entity Too Large")

        assert isinstance(classify_upstream_error(error), PayloadTooLargeError)

    def test_status_429(self):
        error = ModelHTTPError(status_code=429, model_name="m", body=None)

        assert isinstance(classify_upstream_error(error), UpstreamRateLimitedError)

    def test_rate_limit_text(self):
        error = ModelHTTPError(status_code=400, model_name="m", body="rate_limit_exceeded")

        assert isinstance(classify_upstream_error(error), UpstreamRateLimitedError)

    def test_other(self):
        error = ModelHTTPError(status_code=503, model_name="m", body=None)

        assert type(classify_upstream_error(error)) is UpstreamError


class TestModelConfiguration:
    """Tests for build_model() / load_system_prompt() / the factory."""

    def test_groq_model(self, mock_settings):
        model = build_model(mock_settings)

        assert isinstance(model, GroqModel)
        assert model.model_name == "llama-3.3-70b-versatile"

    def test_other_provider_passed_through(self, mock_settings, monkeypatch):
        monkeypatch.setattr(mock_settings, "default_model", "openai:gpt-4o-mini")

        assert build_model(mock_settings) == "openai:gpt-4o-mini"

    def test_system_prompt_file(self):
        prompt = load_system_prompt()

        assert not prompt.startswith("---")
        assert "Sources:" in prompt

    def test_missing_system_prompt_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_system_prompt(tmp_path / "missing.md")

    def test_model_settings(self, mock_settings):
        service = CompletionService(settings=mock_settings, system_prompt="test")

        assert service.agent.model_settings["temperature"] == 0.5
        assert service.agent.model_settings["max_tokens"] == 2000

    def test_factory(self, mock_settings):
        assert isinstance(get_completion_service(), CompletionService)
