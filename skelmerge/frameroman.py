"""FrameMaker Roman single-byte codec used by MIF documents.

The table below follows the FrameMaker character set: control codes carry
FrameMaker special spaces and hyphens, 0x20-0x7f is ASCII, and the upper half
follows Apple Roman with a few FrameMaker deviations (0xad, 0xb0, 0xb2, 0xb3,
0xf0, 0xf5 among them). Decoding and encoding are total: bytes without a
character decode to U+FFFD, and characters without a byte encode to
``REPLACEMENT_BYTE``.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

CODEC_NAME = "x-mif-frameroman"
CODEC_ALIASES = (
    "X-MIF-FRAMEROMAN",
    "X-MIFCHARSET",
    "X-MIF_CHARSET",
    "MIF_CHARSET",
    "MIF",
    "X-MIF",
    "MIF-FRAMEROMAN",
)

REPLACEMENT_CHAR = "\ufffd"
REPLACEMENT_BYTE = 0xFF

_U = REPLACEMENT_CHAR

DECODING_TABLE: Tuple[str, ...] = tuple(
    # 0x00-0x0f
    (_U, _U, _U, _U, "\u00ad", "\u200d", "\u2010", _U,
     "\t", "\t", "\n", _U, _U, "\r", _U, _U)
    # 0x10-0x1f
    + ("\u2007", "\u00a0", "\u2009", "\u2002", "\u2003", "\u2011")
    + (_U,) * 10
    # 0x20-0x7f
    + tuple(chr(code) for code in range(0x20, 0x80))
    # 0x80-0x8f
    + ("\u00c4", "\u00c5", "\u00c7", "\u00c9", "\u00d1", "\u00d6", "\u00dc", "\u00e1",
       "\u00e0", "\u00e2", "\u00e4", "\u00e3", "\u00e5", "\u00e7", "\u00e9", "\u00e8")
    # 0x90-0x9f
    + ("\u00ea", "\u00eb", "\u00ed", "\u00ec", "\u00ee", "\u00ef", "\u00f1", "\u00f3",
       "\u00f2", "\u00f4", "\u00f6", "\u00f5", "\u00fa", "\u00f9", "\u00fb", "\u00fc")
    # 0xa0-0xaf
    + ("\u2020", "\u00b0", "\u00a2", "\u00a3", "\u00a7", "\u2022", "\u00b6", "\u00df",
       "\u00ae", "\u00a9", "\u2122", "\u00b4", "\u00a8", "\u00a6", "\u00c6", "\u00d8")
    # 0xb0-0xbf
    + ("\u00d7", "\u00b1", "\u00f0", "\u0160", "\u00a5", "\u00b5", "\u00b9", "\u00b2",
       "\u00b3", "\u00bc", "\u00bd", "\u00aa", "\u00ba", "\u00be", "\u00e6", "\u00f8")
    # 0xc0-0xcf
    + ("\u00bf", "\u00a1", "\u00ac", "\u00d0", "\u0192", "\u00dd", "\u00fd", "\u00ab",
       "\u00bb", "\u2026", "\u00fe", "\u00c0", "\u00c3", "\u00d5", "\u0152", "\u0153")
    # 0xd0-0xdf
    + ("\u2013", "\u2014", "\u201c", "\u201d", "\u2018", "\u2019", "\u00f7", "\u00de",
       "\u00ff", "\u0178", "\u2044", "\u00a4", "\u2039", "\u203a", "\ufb01", "\ufb02")
    # 0xe0-0xef
    + ("\u2021", "\u00b7", "\u201a", "\u201e", "\u2030", "\u00c2", "\u00ca", "\u00c1",
       "\u00cb", "\u00c8", "\u00cd", "\u00ce", "\u00cf", "\u00cc", "\u00d3", "\u00d4")
    # 0xf0-0xff
    + ("\u0161", "\u00d2", "\u00da", "\u00db", "\u00d9", "\u20ac", "\u02c6", "\u02dc",
       "\u00af", "\u02c7", "\u017d", "\u02da", "\u00b8", "\u02dd", "\u017e", _U)
)

# 0x08 is a second spelling of tab; tab always encodes to 0x09.
ENCODING_MAP: Dict[str, int] = {
    char: code
    for code, char in enumerate(DECODING_TABLE)
    if char != REPLACEMENT_CHAR and code != 0x08
}

_PASS_THROUGH = frozenset({"\t", "\r", "\n"})


class CoderResult(Enum):
    """Reason a streaming decode stopped."""

    UNDERFLOW = "underflow"
    OVERFLOW = "overflow"


@dataclass
class DecodeResult:
    """Outcome of decoding one chunk into a bounded output buffer."""

    text: str
    consumed: int
    status: CoderResult


def decode_byte(value: int) -> str:
    """Return the character for a single FrameRoman byte."""

    return DECODING_TABLE[value & 0xFF]


def encode_char(char: str) -> bytes:
    """Return the single FrameRoman byte for a character."""

    return bytes((ENCODING_MAP.get(char, REPLACEMENT_BYTE),))


def escape_char(char: str) -> str:
    """Return the MIF spelling of a character inside a quoted string.

    Printable ASCII, tab, CR and LF pass through. Other mapped characters use
    the ``\\xNN `` escape. Unmapped characters become U+FFFD.
    """

    if "\x20" <= char <= "\x7e" or char in _PASS_THROUGH:
        return char
    code = ENCODING_MAP.get(char)
    if code is None:
        return REPLACEMENT_CHAR
    return f"\\x{code:02x} "


def decode_chunk(data: bytes, capacity: int) -> DecodeResult:
    """Decode as much of ``data`` as fits into ``capacity`` characters.

    Returns ``OVERFLOW`` when the output filled before the input was
    exhausted, so the caller can retry the remainder with more room.
    """

    limit = max(0, capacity)
    consumed = min(len(data), limit)
    text = "".join(DECODING_TABLE[value] for value in data[:consumed])
    status = CoderResult.OVERFLOW if consumed < len(data) else CoderResult.UNDERFLOW
    return DecodeResult(text=text, consumed=consumed, status=status)


def decode(data: bytes) -> str:
    """Decode a complete byte string."""

    return "".join(DECODING_TABLE[value] for value in data)


def encode(text: str) -> bytes:
    """Encode text leniently; unmapped characters become ``REPLACEMENT_BYTE``."""

    return bytes(ENCODING_MAP.get(char, REPLACEMENT_BYTE) for char in text)


class Codec(codecs.Codec):
    # Lenient in both directions regardless of the requested error handler.
    def encode(self, input, errors="strict"):
        return encode(input), len(input)

    def decode(self, input, errors="strict"):
        data = bytes(input)
        return decode(data), len(data)


class IncrementalEncoder(codecs.IncrementalEncoder):
    def encode(self, input, final=False):
        return encode(input)


class IncrementalDecoder(codecs.IncrementalDecoder):
    def decode(self, input, final=False):
        return decode(bytes(input))


class StreamWriter(Codec, codecs.StreamWriter):
    pass


class StreamReader(Codec, codecs.StreamReader):
    pass


def _normalise(name: str) -> str:
    return name.strip().lower().replace("-", "_").replace(" ", "_")


_NORMALISED_ALIASES = frozenset(_normalise(alias) for alias in CODEC_ALIASES)


def is_frameroman(name: str | None) -> bool:
    """True when ``name`` is one of the FrameRoman charset aliases."""

    return bool(name) and _normalise(name) in _NORMALISED_ALIASES


def search_function(name: str) -> codecs.CodecInfo | None:
    if not is_frameroman(name):
        return None
    return codecs.CodecInfo(
        name=CODEC_NAME,
        encode=Codec().encode,
        decode=Codec().decode,
        incrementalencoder=IncrementalEncoder,
        incrementaldecoder=IncrementalDecoder,
        streamwriter=StreamWriter,
        streamreader=StreamReader,
    )


codecs.register(search_function)
