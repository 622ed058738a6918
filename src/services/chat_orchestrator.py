"""Chat request orchestration service.

Ties the pipeline together for one chat request: throttle check, URL
extraction, scraping, summarization, prompt assembly, chunking, sequential
completion calls and response merging. The chat route only deals with
HTTP concerns and maps the exceptions raised here to status codes.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Awaitable, Callable, List, Sequence

import logfire

from src.config import Settings, get_settings
from src.constants import (
    DEFAULT_QUESTION,
    FAILED_URLS_NOTE,
    SOURCES_HEADER,
    URL_TRAILING_PUNCTUATION,
)
from src.logging_config import mask_pii
from src.middleware.rate_limiter import RequestThrottle, get_request_throttle
from src.models.chat_models import ChatRequest, ChatResponse
from src.models.scraper_models import Attachment, ScrapeBatch
from src.services.chat_errors import (
    ChatValidationError,
    EmptyRequestError,
    PayloadTooLargeError,
    RateLimitedError,
)
from src.services.completion_service import CompletionService, get_completion_service
from src.services.document_extractor import UnsupportedDocumentError, extract_document_text
from src.services.response_merger import merge_responses
from src.services.summarizer import summarize
from src.services.text_chunker import TextChunker
from src.services.url_scraper import UrlScraper, build_url_scraper

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://\S+")


def extract_urls(explicit_urls: Sequence[str], message: str) -> List[str]:
    """Collect URLs to scrape: explicit ones first, then any found in the message.

    Trailing punctuation is trimmed from URLs found in free text, and
    duplicates are dropped keeping first-seen order.
    """
    found = [match.rstrip(URL_TRAILING_PUNCTUATION) for match in _URL_RE.findall(message or "")]
    urls: dict[str, None] = {}
    for url in [*explicit_urls, *found]:
        url = url.strip()
        if url:
            urls[url] = None
    return list(urls)


class ChatOrchestrator:
    """Answer one chat request using the content of the URLs it references.

    Services are injected so tests can swap the scraper, completion API,
    throttle or the sleep function:

        >>> orchestrator = ChatOrchestrator(
        ...     completion_service=CompletionService(model=FunctionModel(reply)),
        ...     url_scraper=fake_scraper,
        ...     sleep=no_sleep,
        ... )
        >>> await orchestrator.process(ChatRequest(message="Hi"), "127.0.0.1")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        completion_service: CompletionService | None = None,
        url_scraper: UrlScraper | None = None,
        throttle: RequestThrottle | None = None,
        chunker: TextChunker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            settings: Settings instance (defaults to get_settings())
            completion_service: Completion adapter. Uses get_completion_service()
                                if not provided.
            url_scraper: Scraper with cache and strategies. Uses
                         build_url_scraper() if not provided.
            throttle: Per-client throttle. Uses the global throttle if not provided.
            chunker: Prompt chunker (defaults to settings' chunk budget)
            sleep: Awaitable delay function (injectable for tests)
        """
        self._settings = settings or get_settings()
        self._completion_service = completion_service
        self._url_scraper = url_scraper
        self._throttle = throttle or get_request_throttle()
        self._chunker = chunker or TextChunker(
            max_tokens=self._settings.chunk_max_tokens,
            chars_per_token=self._settings.chars_per_token,
        )
        self._sleep = sleep

    def _get_completion_service(self) -> CompletionService:
        """Get or create the completion service instance."""
        if self._completion_service is None:
            self._completion_service = get_completion_service()
        return self._completion_service

    def _get_url_scraper(self) -> UrlScraper:
        """Get or create the URL scraper instance."""
        if self._url_scraper is None:
            self._url_scraper = build_url_scraper(self._settings)
        return self._url_scraper

    async def process(
        self,
        request: ChatRequest,
        client_id: str,
        attachments: Sequence[Attachment] = (),
    ) -> ChatResponse:
        """Process a chat request end-to-end.

        Args:
            request: Validated chat request
            client_id: Client identifier used for throttling
            attachments: Files uploaded with a multipart request

        Returns:
            ChatResponse with the merged answer and URL provenance

        Raises:
            RateLimitedError: If the client is over the throttle
            ChatValidationError: If an attachment cannot be read
            EmptyRequestError: If there is no question, source or attachment
            PayloadTooLargeError: If every prompt chunk was rejected for size
            UpstreamError: On any other completion API failure
        """
        start_time = time.time()

        if self._throttle.should_throttle(client_id):
            raise RateLimitedError(self._throttle.retry_after_seconds(client_id))

        await self._sleep(self._settings.request_delay_seconds)

        documents = self._read_attachments(attachments)
        urls = extract_urls(request.urls, request.message)
        batch = await self._get_url_scraper().scrape_many(urls) if urls else ScrapeBatch()

        prompt = self._build_prompt(request.message, batch, documents)
        if not prompt:
            raise EmptyRequestError("Either message or urls must be provided")
        chunks = self._chunker.annotate(self._chunker.chunk(prompt))

        responses = await self._complete_chunks(request, chunks)
        content = responses[0] if len(responses) == 1 else merge_responses(responses)

        failed_urls = batch.failed_urls
        logfire.info(
            "Chat request processed",
            client_id=mask_pii(client_id),
            url_count=len(urls),
            failed_url_count=len(failed_urls),
            attachment_count=len(documents),
            chunk_count=len(chunks),
            answered_chunks=len(responses),
            duration_ms=(time.time() - start_time) * 1000,
        )
        return ChatResponse(
            content=content,
            sources=[outcome.url for outcome in batch.succeeded],
            failed_urls=failed_urls,
            chunked=len(chunks) > 1,
        )

    def _read_attachments(self, attachments: Sequence[Attachment]) -> List[tuple[str, str]]:
        """Extract (filename, text) from each attachment."""
        documents: List[tuple[str, str]] = []
        for attachment in attachments:
            try:
                text = extract_document_text(
                    attachment.filename, attachment.content_type, attachment.data
                )
            except UnsupportedDocumentError as e:
                raise ChatValidationError(str(e)) from e
            except Exception as e:
                logfire.warning(
                    "Attachment extraction failed",
                    filename=attachment.filename,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ChatValidationError(
                    f"Could not read attachment {attachment.filename!r}"
                ) from e
            if not text.strip():
                raise ChatValidationError(
                    f"No text could be extracted from {attachment.filename!r}"
                )
            documents.append((attachment.filename, text))
        return documents

    def _build_prompt(
        self,
        message: str,
        batch: ScrapeBatch,
        documents: Sequence[tuple[str, str]],
    ) -> str:
        """Assemble sources, attachments, the failed-URL note and the question."""
        per_source = self._settings.per_source_max_chars
        blocks = [
            f"Source: {outcome.url}\n{summarize(outcome.content or '', per_source)}"
            for outcome in batch.succeeded
        ]
        blocks.extend(
            f"Attachment: {filename}\n{summarize(text, per_source)}"
            for filename, text in documents
        )

        parts: List[str] = []
        if blocks:
            sources = summarize("\n\n".join(blocks), self._settings.total_source_max_chars)
            parts.append(f"{SOURCES_HEADER}\n\n{sources}")
        if batch.failed_urls:
            parts.append(FAILED_URLS_NOTE + ", ".join(batch.failed_urls))

        question = message.strip()
        if not question and blocks:
            question = DEFAULT_QUESTION
        if question:
            parts.append(question)
        return "\n\n".join(parts)

    async def _complete_chunks(self, request: ChatRequest, chunks: Sequence[str]) -> List[str]:
        """Call the completion API once per chunk, in order.

        Chunks the upstream rejects for size are skipped. If every chunk is
        skipped the request fails with PayloadTooLargeError.
        """
        completion_service = self._get_completion_service()
        responses: List[str] = []
        skipped = 0

        for index, chunk in enumerate(chunks):
            await self._sleep(self._settings.chunk_delay_seconds)
            try:
                responses.append(
                    await completion_service.complete(request.previous_messages, chunk)
                )
            except PayloadTooLargeError as e:
                skipped += 1
                logfire.warning(
                    "Chunk too large, skipping",
                    chunk_index=index,
                    chunk_count=len(chunks),
                    chunk_length=len(chunk),
                    error=str(e),
                )

        if chunks and skipped == len(chunks):
            raise PayloadTooLargeError(f"All {len(chunks)} prompt chunks were too large")
        return responses


# Factory function for dependency injection
def get_chat_orchestrator() -> ChatOrchestrator:
    """Get chat orchestrator instance."""
    return ChatOrchestrator()
