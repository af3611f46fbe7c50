"""Skeleton mergers: turn an original document into a placeholder skeleton.

A merger walks the temporary skeleton in lock-step with a copy of the
original document. Structural constructs are sought past and kept, the
translatable spans are deleted, and placeholders are inserted where the
translated text must go back at export time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Type

from .buffer import SkeletonBuffer
from .errors import ErrorCategory, ErrorRecord, SkeletonFormatError, UnsupportedFileTypeError
from .formats import FormatTable
from .mifparser import FACET_END, FACET_START, MACRO_LINE, STRING_TAG
from .policy import ErrorPolicy
from .tskeleton import (
    ATTR,
    CDATA_END,
    CDATA_START,
    FORMAT,
    META,
    TAG,
    TU,
    SkeletonLine,
    max_depth,
    parse_skeleton,
)

TAG_BOUNDARY = frozenset(" \n\r\t/>")
ATTR_BOUNDARY = frozenset(" \n\r\t")
MIF_NAME_BOUNDARY = frozenset(" \n\r\t>")

CDATA_OPEN = "<![CDATA["
CDATA_CLOSE = "]]>"


class MergeStatus(Enum):
    """Whether a skeleton is trustworthy or was produced best-effort."""

    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"


@dataclass
class MergeResult:
    """Final skeleton plus the anomalies met while producing it."""

    skeleton: str
    status: MergeStatus
    records: List[ErrorRecord] = field(default_factory=list)
    placeholders: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.status is MergeStatus.DEGRADED


def tu_placeholder(refs: Sequence[str]) -> str:
    """Placeholder for a run of ``tu:ID`` / ``format:N`` references."""

    if len(refs) == 1:
        kind, _, ident = refs[0].partition(":")
        if kind == FORMAT:
            return format_placeholder(ident)
        return f"<lt:tu id='{ident}'/>"
    joined = "".join(f"{ref} " for ref in refs)
    return f"<lt:tu ids='{joined}'/>"


def format_placeholder(format_id: str) -> str:
    return f"<lt:format id='{format_id}'/>"


class SkeletonMerger(ABC):
    """Shared buffer primitives; subclasses map skeleton lines onto them."""

    kind = "generic"

    def __init__(self, *, policy: Optional[ErrorPolicy] = None) -> None:
        self.policy = policy or ErrorPolicy()
        self.buffer = SkeletonBuffer("")
        self.placeholders: List[str] = []
        self.prev_tag_was_empty = False
        self.prev_tag_seek_offset: Optional[int] = None
        self.attr_value_offset: Optional[int] = None
        self.in_attr = False
        self._last_seq: Optional[int] = None

    def merge(self, original: str, tskeleton: str) -> MergeResult:
        self.buffer = SkeletonBuffer(original)
        self.placeholders = []
        self.prev_tag_was_empty = False
        self.prev_tag_seek_offset = None
        self.attr_value_offset = None
        self.in_attr = False
        self._last_seq = None

        first_record = len(self.policy.records)
        self.run(parse_skeleton(tskeleton))
        records = self.policy.records[first_record:]

        degraded = any(
            record.category in (ErrorCategory.MERGE, ErrorCategory.RESOLUTION)
            for record in records
        )
        return MergeResult(
            skeleton=self.buffer.getvalue(),
            status=MergeStatus.DEGRADED if degraded else MergeStatus.SUCCEEDED,
            records=list(records),
            placeholders=list(self.placeholders),
        )

    @abstractmethod
    def run(self, lines: List[Optional[SkeletonLine]]) -> None:
        """Consume the parsed temporary skeleton, editing ``self.buffer``."""

    # Diagnostics

    def anomaly(self, message: str) -> None:
        details = f"{self.kind} merger, seq={self._last_seq}"
        self.policy.handle_error(ErrorCategory.MERGE, message, details)

    def malformed_line(self) -> None:
        """Report a temporary skeleton line that matches no known form."""

        message = "Unrecognizable line in temporary skeleton"
        if self.policy.strict:
            raise SkeletonFormatError(
                f"{message} ({self.kind} merger, after seq={self._last_seq})"
            )
        self.anomaly(message)

    def note_sequence(self, line: SkeletonLine) -> None:
        if line.seq is None:
            return
        if self._last_seq is not None and line.seq <= self._last_seq:
            self.anomaly(f"Sequence number {line.seq} does not follow {self._last_seq}")
        self._last_seq = line.seq

    # Runs of adjacent segments

    def collect_run(
        self, lines: List[Optional[SkeletonLine]], index: int
    ) -> Tuple[List[str], int]:
        """Gather the references of the run starting at ``lines[index]``.

        Returns the references and the index of the first line after the run.
        """

        first = lines[index]
        refs = [first.ref]
        number, total = first.no, first.of
        position = index + 1
        while number < total:
            following = lines[position] if position < len(lines) else None
            if following is None or not following.is_unit:
                self.anomaly(
                    f"Run of {total} segments ended after segment {number}"
                )
                break
            refs.append(following.ref)
            number = following.no
            position += 1
        return refs, position

    # Buffer primitives

    def find_tag(self, prefix: str, start: int) -> int:
        """Offset of ``prefix`` not followed by more name characters, or -1."""

        buffer = self.buffer
        while True:
            found = buffer.find(prefix, start)
            if found == -1:
                return -1
            after = found + len(prefix)
            if after < len(buffer) and buffer.char_at(after) in TAG_BOUNDARY:
                return found
            start = found + 1

    def seek_to_tag(self, name: str, *, end: bool = False, through: str = "after") -> bool:
        """Move the cursor before or after the next ``<name`` / ``</name``."""

        prefix = f"</{name}" if end else f"<{name}"
        start = self.find_tag(prefix, self.buffer.pos)
        if start == -1:
            self.anomaly(f"Cannot find tag {prefix}")
            self.prev_tag_was_empty = False
            return False

        self.prev_tag_seek_offset = start
        if through == "before":
            self.buffer.seek(start)
            return True

        close = self.buffer.find(">", start + len(prefix))
        if close == -1:
            self.anomaly(f"Cannot find the end of tag {prefix}")
            self.prev_tag_was_empty = False
            return False
        self.prev_tag_was_empty = self.buffer.char_at(close - 1) == "/"
        self.buffer.seek(close + 1)
        return True

    def delete_to_tag(self, name: str, *, end: bool = False, through: str = "after") -> bool:
        """Delete from the cursor up to (or through) the next matching tag."""

        prefix = f"</{name}" if end else f"<{name}"
        buffer = self.buffer
        start = self.find_tag(prefix, buffer.pos)
        if start == -1:
            self.anomaly(f"Cannot find tag {prefix} to delete to")
            self.prev_tag_was_empty = False
            return False

        if through == "before":
            delete_to = start
        else:
            close = buffer.find(">", start + len(prefix))
            if close == -1:
                self.anomaly(f"Found {prefix} but its end is missing")
                return False
            self.prev_tag_was_empty = not end and buffer.char_at(close - 1) == "/"
            delete_to = close + 1

        buffer.delete(buffer.pos, delete_to)
        return True

    def seek_past(self, delimiter: str) -> bool:
        """Move the cursor just past the next CDATA delimiter."""

        found = self.buffer.find(delimiter)
        if found == -1:
            self.anomaly(f"Cannot find CDATA delimiter {delimiter}")
            self.prev_tag_was_empty = False
            return False
        self.buffer.seek(found + len(delimiter))
        return True

    def seek_back_to_attr(self, attr_name: str, parent_tag: str = "") -> bool:
        """Empty an attribute value of the tag just passed.

        The value offset is remembered so the next placeholder lands between
        the quotes.
        """

        buffer = self.buffer
        needle = f"{attr_name}="
        start = self.prev_tag_seek_offset
        if start is None:
            self.anomaly(f"No tag seen before attribute {attr_name} of {parent_tag}")
            return False

        while True:
            found = buffer.find(needle, start)
            if found == -1 or found > buffer.pos:
                self.anomaly(f"Attribute {attr_name} of {parent_tag} is out of range")
                return False
            if found > 0 and buffer.char_at(found - 1) in ATTR_BOUNDARY:
                break
            start = found + 1

        quote_at = found + len(needle)
        quote = buffer.char_at(quote_at)
        if quote not in ("'", '"'):
            self.anomaly(f"Invalid quote character {quote!r} for attribute {attr_name}")
            return False

        value_start = quote_at + 1
        close = buffer.find(quote, value_start)
        if close == -1:
            self.anomaly(f"Cannot find the closing quote of attribute {attr_name}")
            return False

        buffer.delete(value_start, close)
        self.attr_value_offset = value_start
        return True

    def insert_placeholder(self, placeholder: str) -> None:
        if self.in_attr and self.attr_value_offset is not None:
            self.buffer.insert(self.attr_value_offset, placeholder)
            self.attr_value_offset += len(placeholder)
        else:
            self.buffer.insert(self.buffer.pos, placeholder)
        self.placeholders.append(placeholder)

    def insert_tu(self, refs: Sequence[str]) -> None:
        self.insert_placeholder(tu_placeholder(refs))

    def insert_format(self, format_id: str) -> None:
        self.insert_placeholder(format_placeholder(format_id))


class XmlSkeletonMerger(SkeletonMerger):
    """Merger for XML-like formats whose tag lines carry ``inText``.

    ``inText`` is one of ``inside`` (markup within translatable text, deleted),
    ``outside`` (kept), ``entering`` (kept ancestor of translatable text) or
    ``leaving`` (end of a translatable run).
    """

    kind = "xml"

    def run(self, lines: List[Optional[SkeletonLine]]) -> None:
        previous: Optional[SkeletonLine] = None
        index = 0
        while index < len(lines):
            line = lines[index]
            index += 1
            if line is None:
                self.malformed_line()
                previous = None
                continue
            self.note_sequence(line)

            if line.is_unit:
                refs, index = self.collect_run(lines, index - 1)
                self.insert_tu(refs)
                line = lines[index - 1] or line
            elif line.kind == ATTR:
                if line.is_end:
                    self.in_attr = False
                else:
                    self.in_attr = True
                    self.seek_back_to_attr(line.get("name"), line.get("tag"))
            elif line.kind == CDATA_START:
                self.seek_past(CDATA_OPEN)
            elif line.kind == CDATA_END:
                self.seek_past(CDATA_CLOSE)
            elif line.kind == META:
                pass
            elif line.is_end:
                self._end_tag(line, previous)
            else:
                self._begin_tag(line)
            previous = line

    def _end_tag(self, line: SkeletonLine, previous: Optional[SkeletonLine]) -> None:
        position = line.get("inText", "outside")
        if (previous is not None and previous.is_unit) or position == "leaving":
            self.delete_to_tag(line.name, end=True, through="before")
        elif self.prev_tag_was_empty:
            # The end event of an empty element has no text in the document.
            self.prev_tag_was_empty = False
        elif position == "inside":
            self.delete_to_tag(line.name, end=True, through="after")
        elif position == "outside":
            self.seek_to_tag(line.name, end=True, through="after")
        else:
            self.anomaly(f"Unexpected end tag condition for {line.name}")

    def _begin_tag(self, line: SkeletonLine) -> None:
        position = line.get("inText", "outside")
        if position in ("entering", "outside"):
            self.seek_to_tag(line.name, through="after")
        elif position == "inside":
            self.delete_to_tag(line.name, through="after")
        else:
            self.anomaly(f"Unexpected begin tag condition for {line.name}")


class OdfSkeletonMerger(SkeletonMerger):
    """Merger for ODF content where paragraphs may nest inside paragraphs.

    Paragraphs deeper than one level are removed in successive passes, from
    the deepest level up; the last pass inserts the placeholders.
    """

    kind = "odf"

    PARAGRAPH = "text:p"
    HEADING = "text:h"

    def run(self, lines: List[Optional[SkeletonLine]]) -> None:
        deepest = max_depth(lines)
        for level in range(deepest, 1, -1):
            self._deletion_pass(lines, level)
        self._placeholder_pass(lines)

    def _deletion_pass(self, lines: List[Optional[SkeletonLine]], level: int) -> None:
        self.buffer.rewind()
        self._last_seq = None
        empty: Dict[int, bool] = {}
        for line in lines:
            if line is None or line.kind != TAG:
                continue
            depth = line.depth or 0
            if depth == level:
                if not line.is_end and line.name == self.PARAGRAPH:
                    self.delete_element(line.name)
            elif depth < level and line.name.startswith("text:"):
                if not line.is_end:
                    empty[depth] = self.seek_to_tag(line.name) and self.prev_tag_was_empty
                elif empty.get(depth):
                    empty[depth] = False
                else:
                    self.seek_to_tag(line.name, end=True)

    def _placeholder_pass(self, lines: List[Optional[SkeletonLine]]) -> None:
        self.buffer.rewind()
        self._last_seq = None
        previous: Optional[SkeletonLine] = None
        is_empty = False
        index = 0
        while index < len(lines):
            line = lines[index]
            index += 1
            if line is None:
                self.malformed_line()
                continue
            if line.kind == META or line.depth != 1:
                continue
            self.note_sequence(line)

            if line.kind == TU:
                refs, index = self.collect_run(lines, index - 1)
                self.insert_tu(refs)
                line = lines[index - 1] or line
            elif line.kind == FORMAT:
                self.insert_format(line.get("id"))
            elif line.kind == TAG and line.name in (self.PARAGRAPH, self.HEADING):
                if not line.is_end:
                    is_empty = self.seek_to_tag(line.name) and self.prev_tag_was_empty
                elif is_empty:
                    pass
                elif line.name == self.HEADING or (previous is not None and previous.is_unit):
                    self.delete_to_tag(line.name, end=True, through="before")
                    self.seek_to_tag(line.name, end=True)
                else:
                    self.seek_to_tag(line.name, end=True)
            previous = line

    def delete_element(self, name: str) -> bool:
        """Remove the next whole ``name`` element and leave the cursor there."""

        buffer = self.buffer
        prefix = f"<{name}"
        start = self.find_tag(prefix, buffer.pos)
        if start == -1:
            self.anomaly(f"Cannot locate element {name} to delete")
            return False
        close = buffer.find(">", start)
        if close == -1:
            self.anomaly(f"Element {name} has no end of tag")
            return False
        if buffer.char_at(close - 1) == "/":
            end = close + 1
        else:
            end_tag = f"</{name}>"
            found = buffer.find(end_tag, close)
            if found == -1:
                self.anomaly(f"Cannot locate the end of element {name}")
                return False
            end = found + len(end_tag)
        buffer.delete(start, end)
        buffer.seek(start)
        return True


class MifSkeletonMerger(SkeletonMerger):
    """Merger for MIF, driven by statement nesting instead of tag names.

    Scanning skips comments, backquoted strings (honouring escapes), facet
    blocks and macro definitions so that ``<`` and ``>`` are only counted
    where they delimit statements. A paragraph imported as one unit spans
    several string literals; the markup between them is copied into
    ``formats`` under the ids its temporary skeleton line lists.
    """

    kind = "mif"

    def __init__(
        self,
        *,
        policy: Optional[ErrorPolicy] = None,
        formats: Optional[FormatTable] = None,
    ) -> None:
        super().__init__(policy=policy)
        self.formats = formats if formats is not None else FormatTable()

    def run(self, lines: List[Optional[SkeletonLine]]) -> None:
        index = 0
        while index < len(lines):
            line = lines[index]
            index += 1
            if line is None:
                self.malformed_line()
                continue
            self.note_sequence(line)
            if line.is_unit:
                refs, index = self.collect_run(lines, index - 1)
                self.replace_strings(tu_placeholder(refs), line.strings, line.codes)
            elif line.kind == TAG and not line.is_end:
                self.seek_statement(line.name)
            elif line.kind == TAG:
                self.seek_statement_end()

    def _scan(self, start: Optional[int] = None, *, stop_at_strings: bool = False) -> Iterator[int]:
        """Yield offsets of structural characters from ``start`` (default cursor)."""

        text = self.buffer.text
        length = len(text)
        index = self.buffer.pos if start is None else start
        while index < length:
            if index == 0 or text[index - 1] in "\r\n":
                line_end = _line_end(text, index)
                line = text[index:line_end]
                if line.startswith(FACET_END):
                    index = _skip_newline(text, line_end)
                    continue
                if FACET_START.fullmatch(line):
                    index = _facet_end(text, line_end)
                    continue
                if MACRO_LINE.search(line):
                    index = _skip_newline(text, line_end)
                    continue

            char = text[index]
            if char == "#":
                index = _line_end(text, index)
            elif char == "\\":
                index += 2
            elif char == "`" and not stop_at_strings:
                index = _string_end(text, index) + 1
            else:
                yield index
                index += 1

    def _find_statement(self, name: str, start: Optional[int] = None) -> int:
        """Offset just past the name of the next ``<name`` statement, or -1."""

        text = self.buffer.text
        for index in self._scan(start):
            if text[index] != "<":
                continue
            begin = index + 1
            while begin < len(text) and text[begin] == " ":
                begin += 1
            after = begin + len(name)
            if text.startswith(name, begin) and (
                after >= len(text) or text[after] in MIF_NAME_BOUNDARY
            ):
                return after
        return -1

    def _find_literal(self, start: Optional[int] = None) -> Optional[Tuple[int, int]]:
        """Backquote and apostrophe offsets of the next literal in this statement."""

        text = self.buffer.text
        opening = -1
        for index in self._scan(start, stop_at_strings=True):
            char = text[index]
            if char == "`":
                opening = index
                break
            if char in "<>":
                self.anomaly("No string literal before the next statement")
                return None
        if opening == -1:
            self.anomaly("No string literal left in the document")
            return None

        closing = _string_end(text, opening)
        if closing >= len(text):
            self.anomaly("Unterminated string literal")
            return None
        return opening, closing

    def seek_statement(self, name: str) -> bool:
        """Move the cursor just past the name of the next ``<name`` statement."""

        after = self._find_statement(name)
        if after == -1:
            self.anomaly(f"Cannot find statement <{name}")
            return False
        self.buffer.seek(after)
        return True

    def seek_statement_end(self) -> bool:
        """Move the cursor past the ``>`` closing the current statement."""

        text = self.buffer.text
        depth = 0
        for index in self._scan():
            char = text[index]
            if char == "<":
                depth += 1
            elif char == ">":
                if depth == 0:
                    self.buffer.seek(index + 1)
                    return True
                depth -= 1
        self.anomaly("Cannot find the end of the current statement")
        return False

    def replace_strings(
        self, placeholder: str, strings: int = 1, codes: Sequence[str] = ()
    ) -> bool:
        """Replace ``strings`` consecutive literals by one ``placeholder``.

        Everything from the apostrophe closing one literal through the
        backquote opening the next is stored as the format text of the
        matching entry of ``codes``.
        """

        first = self._find_literal()
        if first is None:
            return False
        spans = [first]
        while len(spans) < strings:
            after = self._find_statement(STRING_TAG, spans[-1][1] + 1)
            if after == -1:
                self.anomaly(f"Paragraph ended after {len(spans)} of {strings} strings")
                break
            span = self._find_literal(after)
            if span is None:
                break
            spans.append(span)

        if len(codes) < len(spans) - 1:
            self.anomaly(f"Expected {len(spans) - 1} format codes, found {len(codes)}")
        for format_id, before, after in zip(codes, spans, spans[1:]):
            self.formats.put(format_id, self.buffer.slice(before[1], after[0] + 1))

        opening, closing = spans[0][0], spans[-1][1]
        self.buffer.delete(opening + 1, closing)
        self.buffer.insert(opening + 1, placeholder)
        self.placeholders.append(placeholder)
        self.buffer.seek(opening + 1 + len(placeholder) + 1)
        return True


def _line_end(text: str, index: int) -> int:
    """Offset of the line break ending the line that contains ``index``."""

    while index < len(text) and text[index] not in "\r\n":
        index += 1
    return index


def _skip_newline(text: str, index: int) -> int:
    if text.startswith("\r\n", index):
        return index + 2
    if index < len(text):
        return index + 1
    return index


def _facet_end(text: str, index: int) -> int:
    """Offset just after the ``=EndInset`` line following ``index``."""

    position = _skip_newline(text, index)
    while position < len(text):
        line_end = _line_end(text, position)
        if text.startswith(FACET_END, position):
            return _skip_newline(text, line_end)
        position = _skip_newline(text, line_end)
    return len(text)


def _string_end(text: str, opening: int) -> int:
    """Offset of the apostrophe closing the literal opened at ``opening``."""

    index = opening + 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "'":
            return index
        index += 1
    return len(text)


MERGERS: Dict[str, Type[SkeletonMerger]] = {
    "xml": XmlSkeletonMerger,
    "html": XmlSkeletonMerger,
    "odf": OdfSkeletonMerger,
    "mif": MifSkeletonMerger,
}


def build_merger(kind: str, *, policy: Optional[ErrorPolicy] = None) -> SkeletonMerger:
    """Return the merger registered for ``kind``."""

    try:
        merger_cls = MERGERS[kind.lower()]
    except KeyError as exc:
        raise UnsupportedFileTypeError(f"No skeleton merger for '{kind}'") from exc
    return merger_cls(policy=policy)
