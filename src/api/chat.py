"""Chat endpoint.

Accepts JSON or multipart form requests, delegates the pipeline to the
ChatOrchestrator and maps its exceptions to HTTP responses. Full error
detail stays in the logs; clients get a short, user-facing message.
"""

import json
import logging
from typing import Any, List

import sentry_sdk
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from src.constants import (
    ATTACHMENT_ERROR_CONTENT,
    PAYLOAD_TOO_LARGE_CONTENT,
    PAYLOAD_TOO_LARGE_ERROR,
    RATE_LIMITED_CONTENT,
    RATE_LIMITED_ERROR,
    SERVER_ERROR,
    SERVER_ERROR_CONTENT,
    UPSTREAM_RATE_LIMITED_CONTENT,
    UPSTREAM_RATE_LIMITED_ERROR,
    UPSTREAM_RETRY_AFTER_SECONDS,
    VALIDATION_ERROR_CONTENT,
)
from src.logging_config import mask_pii
from src.middleware.rate_limit_gate import get_client_id
from src.models.chat_models import ChatRequest, ChatResponse, ErrorResponse
from src.models.scraper_models import Attachment
from src.services.chat_errors import (
    ChatValidationError,
    EmptyRequestError,
    PayloadTooLargeError,
    RateLimitedError,
    UpstreamRateLimitedError,
)
from src.services.chat_orchestrator import ChatOrchestrator, get_chat_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter()

_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


class RequestParseError(ValueError):
    """The body could not be decoded into a chat request."""


def _error_response(
    status_code: int,
    error: str,
    content: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, content=content).model_dump(by_alias=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _validation_message(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        msg = item.get("msg", "Invalid value").removeprefix("Value error, ")
        messages.append(f"{location}: {msg}" if location else msg)
    return "; ".join(messages) or "Invalid request"


def _parse_json_field(raw: Any, field_name: str) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise RequestParseError(f"{field_name} must be valid JSON") from e


async def _parse_form(request: Request) -> tuple[dict[str, Any], List[Attachment]]:
    """Read message, urls, previousMessages and files from a form body."""
    form = await request.form()

    urls: List[str] = []
    for value in form.getlist("urls"):
        if not isinstance(value, str):
            continue
        value = value.strip()
        if value.startswith("["):
            parsed = _parse_json_field(value, "urls")
            if not isinstance(parsed, list):
                raise RequestParseError("urls must be a JSON array")
            urls.extend(str(url) for url in parsed)
        elif value:
            urls.append(value)

    attachments: List[Attachment] = []
    for item in form.getlist("files"):
        if isinstance(item, UploadFile):
            attachments.append(
                Attachment(
                    filename=item.filename or "upload",
                    content_type=item.content_type or "application/octet-stream",
                    data=await item.read(),
                )
            )

    message = form.get("message")
    payload = {
        "message": message if isinstance(message, str) else "",
        "urls": urls,
        "previousMessages": _parse_json_field(form.get("previousMessages"), "previousMessages")
        or [],
        "has_attachments": bool(attachments),
    }
    return payload, attachments


async def parse_chat_request(request: Request) -> tuple[ChatRequest, List[Attachment]]:
    """Decode a JSON or form body into a ChatRequest plus any uploaded files.

    Raises:
        RequestParseError: If the body is not valid JSON or form data
        ValidationError: If the decoded payload fails model validation
    """
    content_type = request.headers.get("content-type", "").lower()
    attachments: List[Attachment] = []

    if content_type.startswith(_FORM_CONTENT_TYPES):
        payload, attachments = await _parse_form(request)
    else:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RequestParseError("Request body must be valid JSON") from e
        if not isinstance(payload, dict):
            raise RequestParseError("Request body must be a JSON object")
        # Only multipart requests can carry files
        payload.pop("has_attachments", None)

    return ChatRequest.model_validate(payload), attachments


@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    request: Request,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
):
    """Answer a chat message using the content of the URLs it references."""
    client_id = get_client_id(request)

    try:
        chat_request, attachments = await parse_chat_request(request)
    except RequestParseError as e:
        logger.info("Rejected malformed chat request: %s", e)
        return _error_response(400, str(e), VALIDATION_ERROR_CONTENT)
    except ValidationError as e:
        message = _validation_message(e)
        logger.info("Rejected invalid chat request: %s", message)
        return _error_response(400, message, VALIDATION_ERROR_CONTENT)

    try:
        return await orchestrator.process(chat_request, client_id, attachments)
    except RateLimitedError as e:
        logger.warning("Client %s throttled", mask_pii(client_id))
        return _error_response(
            429,
            RATE_LIMITED_ERROR,
            RATE_LIMITED_CONTENT,
            headers={"Retry-After": str(e.retry_after)},
        )
    except UpstreamRateLimitedError as e:
        logger.warning("Completion API rate limited the request: %s", e)
        return _error_response(
            429,
            UPSTREAM_RATE_LIMITED_ERROR,
            UPSTREAM_RATE_LIMITED_CONTENT,
            headers={"Retry-After": str(UPSTREAM_RETRY_AFTER_SECONDS)},
        )
    except PayloadTooLargeError as e:
        logger.warning("Chat request too large: %s", e)
        return _error_response(413, PAYLOAD_TOO_LARGE_ERROR, PAYLOAD_TOO_LARGE_CONTENT)
    except EmptyRequestError as e:
        logger.info("Rejected empty chat request: %s", e)
        return _error_response(400, str(e), VALIDATION_ERROR_CONTENT)
    except ChatValidationError as e:
        logger.info("Rejected chat request: %s", e)
        return _error_response(400, str(e), ATTACHMENT_ERROR_CONTENT)
    except Exception as e:
        logger.error("Error processing chat request: %s", e, exc_info=True)
        sentry_sdk.capture_exception(e)
        return _error_response(500, SERVER_ERROR, SERVER_ERROR_CONTENT)
