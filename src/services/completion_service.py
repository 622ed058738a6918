"""Completion API adapter built on PydanticAI."""

import logging
import time
from pathlib import Path
from typing import Sequence

import logfire
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models import Model
from pydantic_ai.models.groq import GroqModel
from pydantic_ai.providers.groq import GroqProvider
from pydantic_ai.settings import ModelSettings

from src.config import Settings, get_settings
from src.models.chat_models import Message
from src.services.chat_errors import (
    ChatProcessingError,
    PayloadTooLargeError,
    UpstreamError,
    UpstreamRateLimitedError,
)

logger = logging.getLogger(__name__)

# Project root (parent of src/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_CHAT_SYSTEM_PROMPT_PATH = _PROJECT_ROOT / "prompts" / "chat_system_instructions.md"


def load_system_prompt(path: Path = _CHAT_SYSTEM_PROMPT_PATH) -> str:
    """Load system instructions, dropping a leading front-matter block."""
    if not path.exists():
        raise FileNotFoundError(f"Chat system prompt not found: {path}")
    template = path.read_text(encoding="utf-8")
    if template.startswith("---"):
        template = template.split("---", 2)[-1]
    return template.strip()


def build_model(settings: Settings) -> Model | str:
    """Resolve settings.default_model into a PydanticAI model.

    'groq:<name>' models get an explicit provider so the configured key is
    used; any other '<provider>:<name>' string is handed to PydanticAI.
    """
    provider_name, _, model_name = settings.default_model.partition(":")
    if provider_name == "groq":
        return GroqModel(model_name, provider=GroqProvider(api_key=settings.groq_api_key))
    return settings.default_model


def classify_upstream_error(error: Exception) -> ChatProcessingError:
    """Map a PydanticAI failure (usually ModelHTTPError) onto chat errors."""
    text = str(error).lower()
    status_code = getattr(error, "status_code", None)
    if status_code == 413 or "413" in text or "too large" in text:
        return PayloadTooLargeError(str(error))
    if status_code == 429 or "rate_limit_exceeded" in text:
        return UpstreamRateLimitedError(str(error))
    return UpstreamError(str(error))


class CompletionService:
    """Send prompts plus bounded conversation history to the completion API."""

    def __init__(
        self,
        model: Model | str | None = None,
        settings: Settings | None = None,
        system_prompt: str | None = None,
    ):
        """
        Initialize the completion service.

        Args:
            model: PydanticAI model or model string (defaults to settings.default_model)
            settings: Settings instance (defaults to get_settings())
            system_prompt: Instructions (defaults to prompts/chat_system_instructions.md)
        """
        self._settings = settings or get_settings()
        self._history_limit = self._settings.history_message_limit
        self._history_max_chars = self._settings.history_message_max_chars

        self.agent = Agent(
            model or build_model(self._settings),
            output_type=str,
            instructions=system_prompt if system_prompt is not None else load_system_prompt(),
            model_settings=ModelSettings(
                temperature=self._settings.completion_temperature,
                max_tokens=self._settings.completion_max_tokens,
            ),
        )
        logger.info("CompletionService initialized with model: %s", self.agent.model)

    def build_history(
        self, history: Sequence[Message], system_prompt: str | None = None
    ) -> list[ModelMessage]:
        """Convert the tail of the conversation into PydanticAI messages.

        Only the last history_message_limit messages are kept, each cut to
        history_message_max_chars characters.
        """
        messages: list[ModelMessage] = []
        if system_prompt:
            messages.append(ModelRequest(parts=[SystemPromptPart(content=system_prompt)]))

        recent = list(history)[-self._history_limit :] if self._history_limit else []
        for message in recent:
            content = message.content[: self._history_max_chars]
            if message.role == "assistant":
                messages.append(ModelResponse(parts=[TextPart(content=content)]))
            elif message.role == "system":
                messages.append(ModelRequest(parts=[SystemPromptPart(content=content)]))
            else:
                messages.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        return messages

    async def complete(
        self,
        history: Sequence[Message],
        user_content: str,
        system_prompt: str | None = None,
    ) -> str:
        """
        Get the assistant's reply to one piece of user content.

        Args:
            history: Previous conversation messages (only the tail is sent)
            user_content: Prompt or prompt chunk for this call
            system_prompt: Optional extra system instructions for this call

        Returns:
            Assistant text

        Raises:
            PayloadTooLargeError: If the upstream rejects the payload size
            UpstreamRateLimitedError: If the upstream rate-limits the call
            UpstreamError: For any other completion API failure
        """
        message_history = self.build_history(history, system_prompt)
        start_time = time.time()
        try:
            result = await self.agent.run(user_content, message_history=message_history)
        except AgentRunError as e:
            error = classify_upstream_error(e)
            logfire.warning(
                "Completion call failed",
                error=str(e),
                error_type=type(e).__name__,
                classified_as=type(error).__name__,
                prompt_length=len(user_content),
                response_time_ms=(time.time() - start_time) * 1000,
            )
            raise error from e

        logfire.info(
            "Completion call succeeded",
            history_count=len(message_history),
            prompt_length=len(user_content),
            response_length=len(result.output),
            response_time_ms=(time.time() - start_time) * 1000,
        )
        return result.output


# Factory function for dependency injection
def get_completion_service() -> CompletionService:
    """Get completion service instance."""
    return CompletionService()
