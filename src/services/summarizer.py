"""Content normalization and summarization.

Turns extracted page text into prompt-ready source blocks: markup and
technical status strings are removed, and oversized text is reduced to
its header sections plus information-dense body lines until a character
budget is reached.
"""

import re
from typing import List

from src.constants import (
    HEADER_SECTION_PREFIXES,
    INTERACTIVE_LINE_MARKERS,
    MIN_INFORMATIVE_LINE_CHARS,
    TRUNCATION_MARKER,
)
from src.models.scraper_models import ScrapeResult

_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HTML_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")
_STATUS_CODE_RE = re.compile(r"\b(?:status code|code|HTTP)[ \t]+\d{3}\b", re.IGNORECASE)
_STATUS_LINE_RE = re.compile(r"\b(?:response|request) status:?[ \t]*\d+", re.IGNORECASE)
_INLINE_SPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_SECTION_SPLIT_RE = re.compile(r"\n\s*\n")


def _clean_once(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _DOCTYPE_RE.sub("", text)
    text = _HTML_COMMENT_RE.sub("", text)
    text = _HTML_TAG_RE.sub("", text)
    text = _STATUS_CODE_RE.sub("", text)
    text = _STATUS_LINE_RE.sub("", text)
    lines = [_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


def clean_text(text: str) -> str:
    """Strip markup and status-code chatter, and normalize whitespace.

    Removing one fragment can expose another (e.g. nested tags), so passes
    repeat until the text stops changing. Every pass only shortens the text.
    """
    if not text:
        return ""
    previous = None
    while text != previous:
        previous = text
        text = _clean_once(text)
    return text


def _is_header_section(section: str) -> bool:
    return section.startswith(HEADER_SECTION_PREFIXES)


def _is_informative(line: str) -> bool:
    if len(line) > MIN_INFORMATIVE_LINE_CHARS:
        return True
    return any(marker in line for marker in INTERACTIVE_LINE_MARKERS)


def _filter_body_section(section: str, kept_lines: List[str]) -> str:
    """Keep informative lines not already covered by a kept line.

    kept_lines holds lowercased lines accepted so far across all sections
    and is updated in place.
    """
    result: List[str] = []
    for line in section.split("\n"):
        line = line.strip()
        if not line or not _is_informative(line):
            continue
        lowered = line.lower()
        if any(lowered in kept or kept in lowered for kept in kept_lines):
            continue
        kept_lines.append(lowered)
        result.append(line)
    return "\n".join(result)


def _fit_lines(section: str, room: int) -> str:
    """Leading lines of a section that fit in room characters.

    When not even the first line fits, it is cut to room.
    """
    kept: List[str] = []
    used = 0
    for line in section.split("\n"):
        needed = len(line) + (1 if kept else 0)
        if used + needed > room:
            if not kept and room > 0:
                return line[:room].rstrip()
            break
        kept.append(line)
        used += needed
    return "\n".join(kept)


def summarize(text: str, max_length: int) -> str:
    """Reduce text to at most max_length characters.

    Text that already fits (after cleaning) is returned as is. Otherwise
    blank-line separated sections are appended in order (header sections
    whole, body sections filtered and de-duplicated). The first section
    that would exceed the budget contributes the lines that still fit,
    cutting its first line if necessary, and the truncation marker is
    appended.

    Args:
        text: Extracted content, possibly with markup remnants
        max_length: Character budget for the result

    Returns:
        Cleaned, possibly truncated text no longer than max_length
    """
    text = clean_text(text)
    if len(text) <= max_length:
        return text

    parts: List[str] = []
    length = 0
    kept_lines: List[str] = []
    truncated = False
    # Room kept free for the marker so the result never overshoots
    reserve = 2 + len(TRUNCATION_MARKER)

    for section in _SECTION_SPLIT_RE.split(text):
        section = section.strip()
        if not section:
            continue
        if not _is_header_section(section):
            section = _filter_body_section(section, kept_lines)
            if not section:
                continue

        separator = 2 if parts else 0
        if length + separator + len(section) + reserve > max_length:
            partial = _fit_lines(section, max_length - length - separator - reserve)
            if partial:
                parts.append(partial)
            truncated = True
            break
        parts.append(section)
        length += separator + len(section)

    if truncated:
        parts.append(TRUNCATION_MARKER)
    # Dropping short lines can join fragments into new markup or status text
    return clean_text("\n\n".join(parts)[:max_length])


def format_scrape_result(result: ScrapeResult) -> str:
    """Render a ScrapeResult as the text block cached and sent to the model."""
    meta = result.metadata
    lines = [f"Title: {meta.title or result.url}"]
    if meta.description:
        lines.append(f"Description: {meta.description}")
    if meta.content_type:
        lines.append(f"Type: {meta.content_type}")
    if meta.image_url:
        lines.append(f"Image: {meta.image_url}")
    header = "\n".join(lines)
    body = result.main_content.strip() or "No content could be extracted from this page."
    return f"{header}\n\nMain Content:\n\n{body}"
