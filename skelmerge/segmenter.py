"""Sentence segmentation for multi-segment translation runs."""

from __future__ import annotations

import re
from typing import List

SENTENCE_PATTERN = re.compile(
    r".+?(?:[\.!?…‽。！？；؛](?:\s+|$)|$)", re.DOTALL
)


def _consume_pattern(pattern: re.Pattern[str], text: str) -> List[str]:
    """Split text by greedily consuming matches from the start of a string."""

    if not text:
        return []

    segments: List[str] = []
    index = 0
    length = len(text)
    while index < length:
        match = pattern.match(text, index)
        if not match:
            # If no match is found, consume the rest of the text.
            segments.append(text[index:])
            break
        end = match.end()
        if end == index:
            # Avoid zero-length loops by consuming at least one character.
            end += 1
        segments.append(text[index:end])
        index = end
    return segments


def segment_text(text: str) -> List[str]:
    """Split text into sentences; joining the result gives back ``text``.

    A trailing whitespace-only piece is folded into the previous sentence so
    every segment carries translatable content.
    """

    sentences = _consume_pattern(SENTENCE_PATTERN, text)
    merged: List[str] = []
    for sentence in sentences:
        if merged and not sentence.strip():
            merged[-1] += sentence
        else:
            merged.append(sentence)
    return merged
