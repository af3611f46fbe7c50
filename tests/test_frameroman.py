import codecs

import pytest

from skelmerge import frameroman
from skelmerge.frameroman import (
    REPLACEMENT_CHAR,
    CoderResult,
    decode_byte,
    decode_chunk,
    encode_char,
    escape_char,
)


def test_table_has_one_entry_per_byte():
    assert len(frameroman.DECODING_TABLE) == 256


@pytest.mark.parametrize(
    "value, char",
    [
        (0x04, "\u00ad"),
        (0x09, "\t"),
        (0x0A, "\n"),
        (0x11, "\u00a0"),
        (0x41, "A"),
        (0x8E, "é"),
        (0xA5, "•"),
        (0xD0, "–"),
        (0xDB, "¤"),
        (0xF5, "€"),
    ],
)
def test_decode_known_points(value, char):
    assert decode_byte(value) == char


@pytest.mark.parametrize("value", [0x00, 0x03, 0x07, 0x0B, 0x16, 0x1F, 0xFF])
def test_unmapped_bytes_decode_to_replacement(value):
    assert decode_byte(value) == REPLACEMENT_CHAR


def test_tab_alias_encodes_to_canonical_byte():
    assert decode_byte(0x08) == "\t"
    assert encode_char("\t") == b"\x09"


def test_mapped_bytes_round_trip():
    for value in range(256):
        char = decode_byte(value)
        if char == REPLACEMENT_CHAR or value == 0x08:
            continue
        assert encode_char(char) == bytes([value]), hex(value)


def test_unmapped_character_encodes_to_replacement_byte():
    assert encode_char("一") == b"\xff"
    assert decode_byte(encode_char("一")[0]) == REPLACEMENT_CHAR


def test_escape_char_forms():
    assert escape_char("a") == "a"
    assert escape_char("\t") == "\t"
    assert escape_char("\n") == "\n"
    assert escape_char("–") == "\\xd0 "
    assert escape_char("é") == "\\x8e "
    assert escape_char("一") == REPLACEMENT_CHAR


def test_decode_chunk_reports_overflow():
    result = decode_chunk(b"\xd0ab", 2)
    assert result.text == "–a"
    assert result.consumed == 2
    assert result.status is CoderResult.OVERFLOW

    rest = decode_chunk(b"\xd0ab"[result.consumed :], 10)
    assert rest.text == "b"
    assert rest.status is CoderResult.UNDERFLOW


@pytest.mark.parametrize("name", ["X-MIF-FRAMEROMAN", "mif", "x_mif_charset", "MIF-FrameRoman"])
def test_codec_is_registered_under_aliases(name):
    assert codecs.lookup(name).name == frameroman.CODEC_NAME


def test_codec_encodes_and_decodes():
    assert b"caf\x8e \xd0".decode("x-mif-frameroman") == "café –"
    assert "–一".encode("x-mif-frameroman") == b"\xd0\xff"


def test_is_frameroman():
    assert frameroman.is_frameroman("X-MIFCHARSET")
    assert not frameroman.is_frameroman("latin-1")
    assert not frameroman.is_frameroman("")
