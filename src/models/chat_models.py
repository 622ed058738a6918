"""Chat request/response wire models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Role spellings seen from clients, mapped onto the three supported roles
_ROLE_ALIASES = {
    "user": "user",
    "human": "user",
    "assistant": "assistant",
    "ai": "assistant",
    "bot": "assistant",
    "model": "assistant",
    "system": "system",
}


class Message(BaseModel):
    """One turn of conversation history."""

    role: Literal["user", "assistant", "system"]
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: object) -> object:
        """Map common role aliases onto user/assistant/system."""
        if isinstance(value, str):
            normalized = _ROLE_ALIASES.get(value.strip().lower())
            if normalized is None:
                raise ValueError(f"Unsupported message role: {value!r}")
            return normalized
        return value

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, value: object) -> object:
        return "" if value is None else value


class ChatRequest(BaseModel):
    """Body of POST /api/chat.

    Accepts both snake_case and the camelCase names browser clients send.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    urls: list[str] = Field(default_factory=list)
    previous_messages: list[Message] = Field(
        default_factory=list, alias="previousMessages"
    )
    has_attachments: bool = Field(default=False, exclude=True)

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("urls", mode="before")
    @classmethod
    def coerce_urls(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return value
        urls = []
        for url in value:
            if isinstance(url, str):
                url = url.strip()
                # Blank entries carry nothing to scrape
                if not url:
                    continue
            urls.append(url)
        return urls

    @model_validator(mode="after")
    def require_message_or_urls(self) -> "ChatRequest":
        """A request needs something to answer: text, a URL or a file."""
        if not self.message.strip() and not self.urls and not self.has_attachments:
            raise ValueError("Either message or urls must be provided")
        return self


class ChatResponse(BaseModel):
    """Successful answer with provenance."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    sources: list[str] = Field(default_factory=list)
    failed_urls: list[str] = Field(default_factory=list, alias="failedUrls")
    chunked: bool = False


class ErrorResponse(BaseModel):
    """Body of every non-200 JSON response from the chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    content: str
    failed_urls: list[str] = Field(default_factory=list, alias="failedUrls")
