"""Lookup of translated text by translation unit id."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Iterator, Optional

from .structures import TranslationUnit

CORE_START_MRK = re.compile(r"<mrk\s+mtype=['\"]x-coretext['\"]>")
CORE_END_MRK = "</mrk>"
CORE_START_TAG = "<lt:core>"
CORE_END_TAG = "</lt:core>"
MERGE_BOUNDARY_MRK = re.compile(r"<mrk[^>]*?mtype=['\"]x-mergeboundary['\"][^>]*>", re.DOTALL)

SPACE_CODES = re.compile(
    r"<x\b[^>]*?\bctype=['\"](?:x-odf-tab|x-odf-s|x-mif-tab|lb)['\"][^>]*>", re.DOTALL
)
ANY_TAG = re.compile(r"<[^>]+>")
WHITESPACE = re.compile(r"\s+")


def strip_core_marks(text: str | None) -> str:
    """Remove core-text markers (``x-coretext`` marks and ``lt:core``)."""

    if not text:
        return ""
    stripped = text
    if "lt:core>" in stripped:
        stripped = stripped.replace(CORE_START_TAG, "").replace(CORE_END_TAG, "")
    if "x-coretext" in stripped:
        stripped = CORE_START_MRK.sub("", stripped).replace(CORE_END_MRK, "")
    return stripped


def strip_merger_marks(text: str | None) -> str:
    """Remove the ``x-mergeboundary`` marks joining merged segments."""

    if not text:
        return ""
    if "x-mergeboundary" not in text:
        return text
    return MERGE_BOUNDARY_MRK.sub("", text)


def plain_text(markup: str) -> str:
    """Readable one-line version of inline markup (codes dropped)."""

    text = SPACE_CODES.sub(" ", strip_core_marks(markup))
    text = ANY_TAG.sub("", text)
    return WHITESPACE.sub(" ", text).strip()


class TuStore:
    """Ordered collection of translation units keyed by id."""

    def __init__(self, units: Iterable[TranslationUnit] = ()) -> None:
        self._units: Dict[str, TranslationUnit] = {}
        self._positions: Dict[str, int] = {}
        for unit in units:
            self.add(unit)

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, tu_id: object) -> bool:
        return tu_id in self._units

    def __iter__(self) -> Iterator[TranslationUnit]:
        return iter(self._units.values())

    def add(self, unit: TranslationUnit) -> None:
        if unit.tu_id not in self._positions:
            self._positions[unit.tu_id] = len(self._positions) + 1
        self._units[unit.tu_id] = unit

    def get(self, tu_id: str) -> Optional[TranslationUnit]:
        return self._units.get(tu_id)

    def has_translation(self, tu_id: str) -> bool:
        unit = self._units.get(tu_id)
        return unit is not None and bool(unit.target)

    def fallback_text(self, unit: TranslationUnit) -> str:
        position = self._positions.get(unit.tu_id, 0)
        return f" [Segment {position} not yet translated: {plain_text(unit.source)}] "

    def _text_of(self, unit: TranslationUnit) -> str:
        if unit.target:
            return unit.target
        return self.fallback_text(unit)

    def target_text(self, tu_id: str) -> Optional[str]:
        """Target of ``tu_id`` or its not-yet-translated fallback; None if unknown."""

        unit = self._units.get(tu_id)
        if unit is None:
            return None
        return self._text_of(unit)
