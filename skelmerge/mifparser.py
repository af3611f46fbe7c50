"""SAX-style tokenizer for Maker Interchange Format (MIF) documents.

MIF is not XML: statements look like ``<Tag arg arg>``, strings are written
`` `like this' `` and special characters are backslash escapes. The parser
below reports what it finds to an ``xml.sax.handler.ContentHandler`` so that
importers can be written the same way as for XML formats.
"""

from __future__ import annotations

import re
from typing import Dict, Iterator, List, Optional
from xml.sax.handler import ContentHandler
from xml.sax.saxutils import escape
from xml.sax.xmlreader import AttributesImpl

from . import frameroman  # noqa: F401  registers the FrameRoman codec
from .errors import MifParseError

DEFAULT_CHARSET = "X-MIF-FRAMEROMAN"
TAB_ELEMENT = "x-mif-tab"
PARAGRAPH_TAG = "Para"
STRING_TAG = "String"

FACET_START = re.compile(r"=\S.*", re.DOTALL)
FACET_END = "=EndInset"
MACRO_LINE = re.compile(r"^\s*de.+?ne\(([^, ]+)\s*,\s*['`‘]*([^']+)'\)\s*$", re.DOTALL)
COMMENT_LINE = re.compile(r"^\s*#.*$", re.DOTALL)
LINE_BREAK = re.compile(r"\r\n|\r|\n")
HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

_SIMPLE_ESCAPES = {
    ">": "&gt;",
    "q": "&apos;",
    "Q": "&#x60;",
    "\\": "&#x5c;",
}


def split_lines(text: str) -> List[str]:
    """Split on LF, CR or CRLF without treating other control codes as breaks."""

    lines = LINE_BREAK.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class MifLineReader:
    """Character source that hides facets, macro definitions and comment lines.

    Every surviving line is delivered followed by a single ``\\n``.
    """

    def __init__(self, text: str) -> None:
        self._lines: Iterator[str] = iter(split_lines(text))
        self._current = ""
        self._pos = 0
        self._in_facet = False
        self.line_number = 0
        self.macros: Dict[str, str] = {}

    def _next_line(self) -> Optional[str]:
        for line in self._lines:
            self.line_number += 1
            if line.startswith(FACET_END):
                self._in_facet = False
                continue
            if self._in_facet:
                continue
            if FACET_START.fullmatch(line):
                self._in_facet = True
                continue
            macro = MACRO_LINE.search(line)
            if macro:
                self.macros[macro.group(1)] = macro.group(2)
                continue
            if COMMENT_LINE.search(line):
                continue
            return line + "\n"
        return None

    def read(self) -> str:
        """Return the next character, or "" at end of input."""

        if self._pos >= len(self._current):
            line = self._next_line()
            if line is None:
                self._current = ""
                self._pos = 0
                return ""
            self._current = line
            self._pos = 0
        char = self._current[self._pos]
        self._pos += 1
        return char

    def unread(self) -> None:
        """Step back one character within the current line.

        Lines already handed over are gone, so at the start of a line this
        does nothing.
        """

        if self._pos > 0:
            self._pos -= 1

    def skip_line(self) -> None:
        """Discard the rest of the current line, newline included."""

        self._pos = len(self._current)


class MifParser:
    """Drive a content handler from MIF text.

    Events: ``startElement(name, attrs)`` for each ``<Tag``, with the tag's
    arguments as attributes keyed "0", "1", ...; ``characters`` for the
    content of each quoted string (also when empty); ``endElement`` for each
    ``>``. Tabs become an empty ``x-mif-tab`` element.
    """

    def __init__(self, handler: ContentHandler, *, charset: str | None = DEFAULT_CHARSET) -> None:
        self.handler = handler
        self.charset = charset or ""
        self.macros: Dict[str, str] = {}
        self._reset()

    def _reset(self) -> None:
        self._reader: Optional[MifLineReader] = None
        self._stack: List[str] = []
        self._buffer: List[str] = []
        self.inside_string = False

    @property
    def inside_paragraph(self) -> bool:
        return PARAGRAPH_TAG in self._stack

    def _error(self, message: str) -> MifParseError:
        line = self._reader.line_number if self._reader else None
        return MifParseError(message, line)

    def parse(self, text: str) -> None:
        self._reset()
        reader = MifLineReader(text)
        self._reader = reader
        handler = self.handler

        handler.startDocument()
        while True:
            char = reader.read()
            if char == "":
                break
            if char == "#":
                if self.inside_string:
                    self._buffer.append("#")
                else:
                    reader.skip_line()
            elif char == "<":
                if self.inside_string:
                    self._buffer.append("&lt;")
                    continue
                tag = self._read_tag()
                if not tag:
                    break
                self._stack.append(tag)
                if tag.lower() == STRING_TAG.lower():
                    handler.startElement(tag, AttributesImpl({}))
                else:
                    args = self._read_args()
                    attrs = {str(index): value for index, value in enumerate(args)}
                    handler.startElement(tag, AttributesImpl(attrs))
            elif char == ">":
                if not self._stack:
                    raise self._error("Tag stack empty when closing a tag")
                handler.endElement(self._stack.pop())
            elif char == "\\":
                self._process_escape()
            elif char == "`":
                self.inside_string = True
            elif char == "'":
                if self.inside_string:
                    self.inside_string = False
                    self._flush(always=True)
            elif char == "&":
                if self.inside_string:
                    self._buffer.append("&amp;")
            elif char == "\n":
                continue
            elif self.inside_string:
                self._buffer.append(char)

        self.macros = dict(reader.macros)
        handler.endDocument()

    def _flush(self, *, always: bool = False) -> None:
        if self._buffer or always:
            self.handler.characters("".join(self._buffer))
            self._buffer = []

    def _emit_tab(self) -> None:
        self.handler.startElement(TAB_ELEMENT, AttributesImpl({}))
        self.handler.endElement(TAB_ELEMENT)

    def _process_escape(self) -> None:
        char = self._reader.read()
        if char == "":
            raise self._error("Unexpected end of input after escape character")
        if char == "t":
            if self.inside_string:
                self._flush()
                self._emit_tab()
            elif self.inside_paragraph:
                self._emit_tab()
        elif char in _SIMPLE_ESCAPES:
            if self.inside_string:
                self._buffer.append(_SIMPLE_ESCAPES[char])
        elif char == "x":
            if self.inside_string:
                self._buffer.append(self._read_hex_char())
        else:
            raise self._error(f"Unexpected character {char!r} following a backslash")

    def _read_hex_char(self) -> str:
        digits = ""
        for _ in range(2):
            char = self._reader.read()
            if char not in HEX_DIGITS or char == "":
                raise self._error("Non-hexadecimal digit in hex escape sequence")
            digits += char
        if self._reader.read() != " ":
            raise self._error("Missing space after hex escape sequence")

        reference = f"&#x{digits};"
        if not self.charset:
            return reference
        try:
            return escape(bytes([int(digits, 16)]).decode(self.charset))
        except (LookupError, UnicodeDecodeError):
            return reference

    def _read_tag(self) -> str:
        reader = self._reader
        char = reader.read()
        while char == " ":
            char = reader.read()
        name: List[str] = []
        while char not in ("", " "):
            if char in "<>\n":
                reader.unread()
                break
            name.append(char)
            char = reader.read()
        return "".join(name)

    def _read_args(self) -> List[str]:
        reader = self._reader
        args: List[str] = []
        token: List[str] = []
        in_string = False
        while True:
            char = reader.read()
            if char == "":
                break
            if not in_string and char in "\n<>":
                if char != "\n":
                    reader.unread()
                break
            if char == "`":
                in_string = True
                token.append(char)
            elif char == "'":
                in_string = False
                token.append(char)
            elif char == " " and not in_string:
                if token:
                    args.append("".join(token))
                    token = []
            else:
                token.append(char)
        if token:
            args.append("".join(token))
        return args


def parse_mif(
    text: str,
    handler: ContentHandler,
    *,
    charset: str | None = DEFAULT_CHARSET,
) -> MifParser:
    """Parse ``text`` into ``handler`` and return the parser for its macros."""

    parser = MifParser(handler, charset=charset)
    parser.parse(text)
    return parser
