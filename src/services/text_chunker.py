"""Split prompts into model-context-sized chunks."""

import re
from typing import List

from src.constants import (
    CHARS_PER_TOKEN_ESTIMATE,
    CONTINUATION_NOTE,
    DEFAULT_CHUNK_MAX_TOKENS,
)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_SEPARATOR = "\n\n"


class TextChunker:
    """Chunk text along paragraph, sentence and word boundaries.

    Units are accumulated greedily into a running chunk that is flushed as
    soon as the next unit would push it over the character budget. Every
    chunk fits the budget; joining the chunks gives back the original text
    up to whitespace at the split points.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_CHUNK_MAX_TOKENS,
        chars_per_token: int = CHARS_PER_TOKEN_ESTIMATE,
    ):
        """Initialize the text chunker.

        Args:
            max_tokens: Approximate token budget per chunk
            chars_per_token: Characters assumed per token
        """
        self._max_chars = max_tokens * chars_per_token

    @property
    def max_chars(self) -> int:
        return self._max_chars

    def chunk(self, text: str) -> List[str]:
        """Split text into chunks.

        Args:
            text: Text to split into chunks

        Returns:
            Chunks in order; a single chunk when the text already fits
        """
        if not text or not text.strip():
            return []
        if len(text) <= self._max_chars:
            return [text]

        chunks: List[str] = []
        current = ""

        def add(unit: str, separator: str) -> None:
            """Append a unit to the running chunk, flushing first if it would overflow."""
            nonlocal current
            if not unit:
                return
            if current and len(current) + len(separator) + len(unit) <= self._max_chars:
                current += separator + unit
                return
            if current:
                chunks.append(current)
            # A single word longer than the whole budget is sliced
            while len(unit) > self._max_chars:
                chunks.append(unit[: self._max_chars])
                unit = unit[self._max_chars :]
            current = unit

        for paragraph in text.split(_PARAGRAPH_SEPARATOR):
            if not paragraph.strip():
                continue
            if len(paragraph) <= self._max_chars:
                add(paragraph, _PARAGRAPH_SEPARATOR)
                continue
            for sentence in _SENTENCE_SPLIT_RE.split(paragraph):
                if len(sentence) <= self._max_chars:
                    add(sentence, " ")
                else:
                    for word in sentence.split():
                        add(word, " ")

        if current:
            chunks.append(current)
        return chunks

    def annotate(self, chunks: List[str]) -> List[str]:
        """Append a continuation note to every chunk after the first."""
        return [
            chunk if index == 0 else f"{chunk}\n\n{CONTINUATION_NOTE}"
            for index, chunk in enumerate(chunks)
        ]
