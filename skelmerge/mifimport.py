"""Build a temporary skeleton and translation units from MIF text.

A ``Para`` becomes one translatable run: the strings of all its lines are
joined, and the markup found between two strings (font changes, variables,
cross-references, line ends) is replaced by an ``x`` code. The literal text
behind each code is filled in by the MIF merger, which sees the raw bytes.
"""

from __future__ import annotations

import html
import re
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from xml.sax.handler import ContentHandler

from .formats import FormatTable
from .mifparser import (
    DEFAULT_CHARSET,
    PARAGRAPH_TAG,
    STRING_TAG,
    TAB_ELEMENT,
    parse_mif,
)
from .resolver import mif_text
from .segmenter import segment_text
from .structures import TranslationUnit
from .tskeleton import SkeletonWriter
from .tustore import plain_text

IdFactory = Callable[[], str]

# Statements between two strings, most telling first.
CODE_TYPES = {
    "xref": "XRef",
    "xrefend": "XRef",
    "variable": "Variable",
    "marker": "Marker",
    "font": "Font",
    "char": "Char",
    "paraline": "ParaLine",
}
CODE_PRIORITY = ("XRef", "Variable", "Marker", "Font", "Char", "ParaLine")
GENERIC_CODE = "String"

HEAD_BYTES = 800
MIF_ENCODING_TAG = b"<MIFEncoding"
# The name of the language written in each encoding, as FrameMaker stores it.
MIF_ENCODING_SIGNATURES = (
    ("shift_jis", b"\x93\xfa\x96\x7b\x8c\xea"),
    ("euc_jp", b"\xc6\xfc\xcb\xdc\xb8\xec"),
    ("big5", b"\xa4\xa4\xa4\xe5"),
    ("gb2312", b"\xd6\xd0\xce\xc4"),
    ("euc_kr", b"\xc7\xd1\xb1\xb9\xbe\xee"),
)
FONT_ENCODING = re.compile(rb"<FEncoding +`([^']+)'>")
FONT_ENCODINGS = {
    "jisx0208.shiftjis": "shift_jis",
    "big5": "big5",
    "gb2312-80.euc": "gb2312",
    "ksc5601-1992": "euc_kr",
}


def detect_charset(raw: bytes) -> str:
    """Pick the charset of MIF string text from the document's own markers.

    A ``<MIFEncoding`` statement near the top names an Asian encoding by
    writing a known word in it; otherwise the first ``<FEncoding`` that is
    not FrameRoman decides. Everything else is FrameRoman.
    """

    head = raw[:HEAD_BYTES]
    marker = head.find(MIF_ENCODING_TAG)
    if marker != -1:
        for charset, signature in MIF_ENCODING_SIGNATURES:
            if head.find(signature, marker) != -1:
                return charset
    for match in FONT_ENCODING.finditer(raw):
        charset = FONT_ENCODINGS.get(match.group(1).decode("ascii", "replace").lower())
        if charset:
            return charset
    return DEFAULT_CHARSET


def _uuid_factory() -> str:
    return str(uuid.uuid4())


def _translatable(markup: str) -> bool:
    return any(char.isalnum() for char in html.unescape(plain_text(markup)))


@dataclass
class MifImport:
    """Everything extracted from one MIF document."""

    tskeleton: str
    units: List[TranslationUnit] = field(default_factory=list)
    formats: FormatTable = field(default_factory=FormatTable)
    macros: Dict[str, str] = field(default_factory=dict)


@dataclass
class _StringRun:
    """Strings that end up behind one placeholder."""

    first_line: int
    texts: List[str] = field(default_factory=list)
    gaps: List[List[str]] = field(default_factory=list)
    last_line: int = -1


class MifSkeletonHandler(ContentHandler):
    """Records MIF statements and turns paragraph text into TUs."""

    def __init__(
        self,
        *,
        segment_sentences: bool = False,
        id_factory: Optional[IdFactory] = None,
        charset: Optional[str] = DEFAULT_CHARSET,
    ) -> None:
        super().__init__()
        self.segment_sentences = segment_sentences
        self.id_factory = id_factory or _uuid_factory
        self.charset = charset
        self.writer = SkeletonWriter()
        self.formats = FormatTable()
        self.units: List[TranslationUnit] = []
        self._in_paragraph = False
        self._run: Optional[_StringRun] = None
        self._gap: List[str] = []
        self._in_string = False
        self._text: List[str] = []

    def startElement(self, name, attrs):
        if name == TAB_ELEMENT:
            if self._in_string:
                self._text.append("\t")
            return
        if name == PARAGRAPH_TAG and not self._in_paragraph:
            self._in_paragraph = True
            self._run = None
        elif name.lower() == STRING_TAG.lower():
            if self._run is None:
                self._run = _StringRun(first_line=len(self.writer.lines))
            elif self._run.texts:
                self._run.gaps.append(self._gap)
            self._gap = []
            self._in_string = True
            self._text = []
        elif self._run is not None:
            self._gap.append(name)
        self.writer.begin(name)

    def characters(self, content):
        if self._in_string:
            self._text.append(content)

    def endElement(self, name):
        if name == TAB_ELEMENT:
            return
        if name.lower() == STRING_TAG.lower() and self._run is not None:
            self._in_string = False
            self._run.texts.append("".join(self._text))
            self._text = []
            self.writer.end(name)
            self._run.last_line = len(self.writer.lines) - 1
            if not self._in_paragraph:
                self._close_run()
            return
        if name == PARAGRAPH_TAG and self._in_paragraph:
            self._close_run()
            self._in_paragraph = False
        self.writer.end(name)

    def _close_run(self) -> None:
        run, self._run = self._run, None
        self._gap = []
        if run is None or not "".join(run.texts).strip():
            return

        codes: List[str] = []
        parts = [run.texts[0]]
        for names, text in zip(run.gaps, run.texts[1:]):
            format_id = self.formats.reserve()
            codes.append(format_id)
            parts.append(f"<x id='{format_id}' ctype='x-mif-{_code_type(names)}'/>")
            parts.append(text)

        lines = self._unit_lines("".join(parts), strings=len(run.texts), codes=codes)
        # Statements between the first and the last string are consumed by
        # the placeholder; their lines must not reach the merger.
        self.writer.lines[run.first_line + 1 : run.last_line] = lines

    def _unit_lines(self, source: str, *, strings: int, codes: List[str]) -> List[str]:
        pieces = segment_text(source) if self.segment_sentences else [source]
        total = len(pieces)
        translatable = [_translatable(piece) or "<" in piece for piece in pieces]
        ids = [self.id_factory() if keep else None for keep in translatable]
        unit_ids = [tu_id for tu_id in ids if tu_id]

        writer = SkeletonWriter()
        for index, piece in enumerate(pieces):
            span = {"strings": strings, "codes": codes} if index == 0 else {}
            tu_id = ids[index]
            if tu_id is None:
                format_id = self.formats.add(mif_text(piece, self.charset))
                writer.format(format_id, length=len(piece), no=index + 1, of=total, **span)
                continue
            position = unit_ids.index(tu_id)
            following = unit_ids[position + 1] if position + 1 < len(unit_ids) else None
            self.units.append(
                TranslationUnit(
                    tu_id=tu_id,
                    source=piece,
                    next_tu_id=following,
                    paragraph_id=unit_ids[0],
                    mergeable=following is not None,
                )
            )
            writer.tu(tu_id, length=len(piece), no=index + 1, of=total, **span)
        return writer.lines


def _code_type(names: List[str]) -> str:
    found = {CODE_TYPES[name.lower()] for name in names if name.lower() in CODE_TYPES}
    for code_type in CODE_PRIORITY:
        if code_type in found:
            return code_type
    return GENERIC_CODE


def import_mif(
    text: str,
    *,
    charset: str | None = DEFAULT_CHARSET,
    segment_sentences: bool = False,
    id_factory: Optional[IdFactory] = None,
) -> MifImport:
    handler = MifSkeletonHandler(
        segment_sentences=segment_sentences,
        id_factory=id_factory,
        charset=charset,
    )
    parser = parse_mif(text, handler, charset=charset)
    return MifImport(
        tskeleton=handler.writer.getvalue(),
        units=handler.units,
        formats=handler.formats,
        macros=parser.macros,
    )
