"""Mutable skeleton buffer with a single bounds-checked cursor."""

from __future__ import annotations

from typing import List

from .errors import BufferBoundsError


class SkeletonBuffer:
    """Owned copy of the original document plus a forward-only cursor.

    Every edit goes through ``delete`` and ``insert`` which keep the cursor
    pointing at the same logical character, so mergers never adjust offsets
    by hand. ``history`` lists every cursor position reached in order.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self.history: List[int] = [0]

    def __len__(self) -> int:
        return len(self._text)

    def __str__(self) -> str:
        return self._text

    @property
    def text(self) -> str:
        return self._text

    @property
    def pos(self) -> int:
        return self._pos

    def _check(self, offset: int, label: str) -> None:
        if offset < 0 or offset > len(self._text):
            raise BufferBoundsError(
                f"{label} offset {offset} outside buffer of length {len(self._text)}"
            )

    def _move(self, offset: int) -> None:
        self._pos = offset
        self.history.append(offset)

    def char_at(self, offset: int) -> str:
        """Return the character at ``offset`` or "" at the end of the buffer."""

        self._check(offset, "read")
        return self._text[offset : offset + 1]

    def find(self, needle: str, start: int | None = None) -> int:
        """Return the offset of ``needle`` at or after ``start`` (default cursor)."""

        begin = self._pos if start is None else start
        self._check(begin, "find")
        return self._text.find(needle, begin)

    def slice(self, start: int, end: int) -> str:
        self._check(start, "slice")
        self._check(end, "slice")
        return self._text[start:end]

    def seek(self, offset: int) -> None:
        """Advance the cursor; moving backwards is refused."""

        self._check(offset, "seek")
        if offset < self._pos:
            raise BufferBoundsError(f"seek backwards from {self._pos} to {offset}")
        self._move(offset)

    def rewind(self) -> None:
        """Reset the cursor for a new full pass over the buffer."""

        self._move(0)

    def delete(self, start: int, end: int) -> str:
        """Remove ``[start, end)`` and return the removed text."""

        self._check(start, "delete")
        self._check(end, "delete")
        if end < start:
            raise BufferBoundsError(f"delete span {start}..{end} is reversed")
        removed = self._text[start:end]
        self._text = self._text[:start] + self._text[end:]
        if self._pos >= end:
            self._pos -= end - start
        elif self._pos > start:
            self._pos = start
        return removed

    def insert(self, at: int, text: str) -> None:
        """Insert ``text`` at ``at``; a cursor at or after ``at`` moves with it."""

        self._check(at, "insert")
        self._text = self._text[:at] + text + self._text[at:]
        if self._pos >= at:
            self._move(self._pos + len(text))

    def getvalue(self) -> str:
        return self._text
