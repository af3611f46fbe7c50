"""Expand skeleton placeholders back into native document text."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from . import frameroman
from .errors import ErrorCategory, ErrorRecord, UnsupportedFileTypeError
from .formats import FormatTable
from .policy import ErrorPolicy
from .tustore import TuStore, strip_core_marks, strip_merger_marks

PLACEHOLDER_PATTERN = re.compile(r"<lt:(tu|format) (id|ids)=(['\"])(.+?)\3/>")
REFERENCE_PATTERN = re.compile(r"(tu|format):([-\w]+)")
CODE_PATTERN = re.compile(r"<[be]?x\b.*?\bid=['\"]([^'\"]+)['\"].*?>", re.DOTALL)
TAG_SPLIT = re.compile(r"(<[^>]*>)")
DOUBLE_ENTITY = re.compile(r"&amp;(lt|gt|quot|apos|amp);")

MAX_NESTING = 16

MIF_ESCAPES = {
    "\\": "\\\\",
    "`": "\\Q",
    "'": "\\q",
    ">": "\\>",
    "\t": "\\t",
}

TextTransform = Callable[[str, bool, Optional[str]], str]


def _xml_text(text: str, in_tag: bool, charset: Optional[str] = None) -> str:
    if in_tag:
        text = text.replace("'", "&apos;").replace('"', "&quot;")
    text = text.replace("\n", "&#xa;")
    return DOUBLE_ENTITY.sub(r"&\1;", text)


def _html_text(text: str, in_tag: bool, charset: Optional[str] = None) -> str:
    return text.replace("'", "&#x27;").replace("&apos;", "&#x27;").replace('"', "&quot;")


def mif_text(text: str, charset: Optional[str] = None) -> str:
    """Write escaped inline text as MIF string content.

    Non-ASCII characters become ``\\xNN `` FrameRoman escapes, or, for an
    Asian document charset, the charset's bytes seen as latin-1 characters.
    """

    wide = bool(charset) and not frameroman.is_frameroman(charset)
    pieces = []
    for char in html.unescape(text):
        escaped = MIF_ESCAPES.get(char)
        if escaped is not None:
            pieces.append(escaped)
        elif wide and char >= "\x80":
            pieces.append(char.encode(charset, errors="replace").decode("latin-1"))
        else:
            pieces.append(frameroman.escape_char(char))
    return "".join(pieces)


def _mif_text(text: str, in_tag: bool, charset: Optional[str] = None) -> str:
    return mif_text(text, charset)


def _plain_text(text: str, in_tag: bool, charset: Optional[str] = None) -> str:
    return html.unescape(text)


FLAVORS: Dict[str, TextTransform] = {
    "xml": _xml_text,
    "odf": _xml_text,
    "html": _html_text,
    "mif": _mif_text,
    "text": _plain_text,
}


def _inside_tag(chunk: str, in_tag: bool) -> bool:
    """Whether a ``<`` is still open after ``chunk``, given the state before it."""

    opening, closing = chunk.rfind("<"), chunk.rfind(">")
    if opening == closing:
        return in_tag
    return opening > closing


@dataclass
class ResolveResult:
    """Native document text plus what could not be resolved cleanly."""

    text: str
    records: List[ErrorRecord] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return any(record.category is ErrorCategory.RESOLUTION for record in self.records)


class PlaceholderResolver:
    """Replace ``<lt:tu .../>`` and ``<lt:format .../>`` with literal text."""

    def __init__(
        self,
        store: TuStore,
        formats: Optional[FormatTable] = None,
        *,
        flavor: str = "xml",
        policy: Optional[ErrorPolicy] = None,
        max_nesting: int = MAX_NESTING,
        charset: Optional[str] = None,
    ) -> None:
        try:
            self.transform = FLAVORS[flavor.lower()]
        except KeyError as exc:
            raise UnsupportedFileTypeError(f"Unknown output flavor '{flavor}'") from exc
        self.flavor = flavor.lower()
        self.store = store
        self.formats = formats or FormatTable()
        self.policy = policy or ErrorPolicy()
        self.max_nesting = max_nesting
        self.charset = charset
        self._missing: List[str] = []

    def resolve(self, skeleton: str) -> ResolveResult:
        first_record = len(self.policy.records)
        self._missing = []
        text = self._expand(skeleton, 0)
        return ResolveResult(
            text=text,
            records=list(self.policy.records[first_record:]),
            missing=list(self._missing),
        )

    def _expand(self, text: str, depth: int) -> str:
        output: List[str] = []
        in_tag = False
        cursor = 0
        for match in PLACEHOLDER_PATTERN.finditer(text):
            preceding = text[cursor : match.start()]
            output.append(preceding)
            in_tag = _inside_tag(preceding, in_tag)
            kind, attr, value = match.group(1), match.group(2), match.group(4)
            if attr == "id":
                references = [(kind, value)]
            else:
                references = REFERENCE_PATTERN.findall(value)
            for ref_kind, ident in references:
                if ref_kind == "tu":
                    resolved = self._tu_text(ident, in_tag, depth)
                else:
                    resolved = self._format_text(ident, depth)
                output.append(resolved)
                in_tag = _inside_tag(resolved, in_tag)
            cursor = match.end()
        output.append(text[cursor:])
        return "".join(output)

    def _tu_text(self, tu_id: str, in_tag: bool, depth: int) -> str:
        if tu_id not in self.store:
            self.policy.handle_error(ErrorCategory.RESOLUTION, f"Unknown translation unit {tu_id}")
            return ""
        if not self.store.has_translation(tu_id):
            self._missing.append(tu_id)
            self.policy.handle_error(
                ErrorCategory.MISSING_TRANSLATION, f"Segment {tu_id} not yet translated"
            )

        text = strip_merger_marks(strip_core_marks(self.store.target_text(tu_id)))
        pieces = TAG_SPLIT.split(text)
        for index in range(0, len(pieces), 2):
            pieces[index] = self.transform(pieces[index], in_tag, self.charset)
        text = "".join(pieces)
        return CODE_PATTERN.sub(lambda code: self._format_text(code.group(1), depth), text)

    def _format_text(self, format_id: str, depth: int) -> str:
        if depth >= self.max_nesting:
            self.policy.handle_error(
                ErrorCategory.RESOLUTION, f"Format code {format_id} nested too deeply"
            )
            return ""
        text = self.formats.get(format_id)
        if text is None:
            self.policy.handle_error(ErrorCategory.RESOLUTION, f"Unknown format code {format_id}")
            return ""
        return self._expand(text, depth + 1)
