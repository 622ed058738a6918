"""Merge per-chunk model responses into one answer."""

import re
from typing import Iterable, List

_SENTENCE_END_RE = re.compile(r"[.!?]+")


def split_sentences(text: str) -> List[str]:
    """Split on runs of sentence punctuation, dropping empty pieces."""
    return [s.strip() for s in _SENTENCE_END_RE.split(text or "") if s.strip()]


def merge_responses(responses: Iterable[str]) -> str:
    """Concatenate chunk responses, dropping repeated sentences.

    A sentence is a duplicate when it contains, or is contained in, an
    already accepted sentence (case-insensitive). This is a textual
    heuristic: near-duplicates that are not substrings of each other are
    both kept.

    Args:
        responses: Model responses in chunk order

    Returns:
        Accepted sentences joined with ". " and a trailing period, or ""
        when no sentence survives
    """
    accepted: List[str] = []
    accepted_lower: List[str] = []

    for response in responses:
        for sentence in split_sentences(response):
            normalized = sentence.lower()
            if any(
                normalized in existing or existing in normalized
                for existing in accepted_lower
            ):
                continue
            accepted.append(sentence)
            accepted_lower.append(normalized)

    if not accepted:
        return ""
    return ". ".join(accepted) + "."
