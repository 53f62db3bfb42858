"""Naive first-sentences summary."""

from __future__ import annotations

import re

_SENTENCE_DELIMITERS = re.compile(r"[.!?]+")

MAX_SUMMARY_SENTENCES = 3


def summarize(text: str, max_sentences: int = MAX_SUMMARY_SENTENCES) -> str:
    """
    Split on runs of '.', '!' or '?', drop empty fragments, keep the first
    max_sentences, and join them with '. ' plus a trailing '.'.

    Fragments are not stripped, so the space that followed a delimiter stays
    at the start of the next fragment:

        >>> summarize("One. Two! Three? Four.")
        'One.  Two.  Three.'
        >>> summarize("")
        '.'
    """
    fragments = [f for f in _SENTENCE_DELIMITERS.split(text) if f]
    return ". ".join(fragments[:max_sentences]) + "."
