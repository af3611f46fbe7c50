from skelmerge.mifimport import detect_charset, import_mif
from skelmerge.mifparser import DEFAULT_CHARSET
from skelmerge.segmenter import segment_text
from skelmerge.tskeleton import FORMAT, TU, parse_skeleton

SIMPLE_MIF = (
    "<MIFFile 9.00>\n"
    "<Para \n"
    " <PgfTag `Body'>\n"
    " <ParaLine \n"
    "  <String `Hello'>\n"
    " >\n"
    ">\n"
)


def test_import_builds_skeleton_and_units(sequential_ids):
    result = import_mif(SIMPLE_MIF, id_factory=sequential_ids)

    assert [unit.tu_id for unit in result.units] == ["tu1"]
    assert result.units[0].source == "Hello"
    assert result.tskeleton.splitlines() == [
        "<MIFFile seq='1'>",
        "</MIFFile seq='2'>",
        "<Para seq='3'>",
        "<PgfTag seq='4'>",
        "</PgfTag seq='5'>",
        "<ParaLine seq='6'>",
        "<String seq='7'>",
        "<tu id='tu1' length='5' no='1' of='1'>",
        "</String seq='8'>",
        "</ParaLine seq='9'>",
        "</Para seq='10'>",
    ]


def test_blank_strings_are_not_translatable(sequential_ids):
    result = import_mif("<Para\n<String ` '>\n<String `'>\n>\n", id_factory=sequential_ids)

    assert result.units == []
    assert all(line.kind != TU for line in parse_skeleton(result.tskeleton))


def test_tabs_are_kept_in_unit_text(sequential_ids):
    result = import_mif("<Para\n<String `a\\tb'>\n>\n", id_factory=sequential_ids)

    assert result.units[0].source == "a\tb"
    assert "x-mif-tab" not in result.tskeleton


def test_sentence_segmentation_chains_units(sequential_ids):
    result = import_mif(
        "<Para\n<String `One. Two! Three'>\n>\n",
        segment_sentences=True,
        id_factory=sequential_ids,
    )

    units = result.units
    assert [unit.source for unit in units] == ["One. ", "Two! ", "Three"]
    assert [unit.next_tu_id for unit in units] == ["tu2", "tu3", None]
    assert {unit.paragraph_id for unit in units} == {"tu1"}
    assert [unit.mergeable for unit in units] == [True, True, False]

    tu_lines = [line for line in parse_skeleton(result.tskeleton) if line and line.kind == TU]
    assert [(line.no, line.of) for line in tu_lines] == [(1, 3), (2, 3), (3, 3)]


def test_macros_are_reported():
    result = import_mif("define(Bullet, `Bullet Text')\n<Doc>\n")

    assert result.macros == {"Bullet": "Bullet Text"}


def test_default_ids_are_unique():
    result = import_mif("<Para\n<String `A'>\n>\n<Para\n<String `B'>\n>\n")

    first, second = result.units
    assert first.tu_id != second.tu_id


def test_segment_text_preserves_input():
    text = "First sentence.  Second one?  "
    pieces = segment_text(text)

    assert "".join(pieces) == text
    assert pieces == ["First sentence.  ", "Second one?  "]


def test_segment_text_empty():
    assert segment_text("") == []


STYLED_MIF = (
    "<Para \n"
    " <ParaLine \n"
    "  <String `Hello '>\n"
    "  <Font \n"
    "   <FWeight `Bold'>\n"
    "  >\n"
    "  <String `world'>\n"
    " >\n"
    ">\n"
)


def test_paragraph_strings_become_one_unit(sequential_ids):
    result = import_mif(STYLED_MIF, id_factory=sequential_ids)

    source = "Hello <x id='1' ctype='x-mif-Font'/>world"
    assert [unit.source for unit in result.units] == [source]
    assert result.tskeleton.splitlines() == [
        "<Para seq='1'>",
        "<ParaLine seq='2'>",
        "<String seq='3'>",
        f"<tu id='tu1' length='{len(source)}' strings='2' codes='1' no='1' of='1'>",
        "</String seq='10'>",
        "</ParaLine seq='11'>",
        "</Para seq='12'>",
    ]


def test_code_type_names_the_markup_between_strings(sequential_ids):
    lines = "<Para\n <ParaLine\n  <String `one'>\n >\n <ParaLine\n  <String `two'>\n >\n>\n"
    mixed = "<Para\n<String `a'>\n<Char Tab>\n<Font\n<FTag `'>\n>\n<String `b'>\n<String `c'>\n>\n"

    assert import_mif(lines, id_factory=sequential_ids).units[0].source == (
        "one<x id='1' ctype='x-mif-ParaLine'/>two"
    )
    assert import_mif(mixed, id_factory=sequential_ids).units[0].source == (
        "a<x id='1' ctype='x-mif-Font'/>b<x id='2' ctype='x-mif-String'/>c"
    )


def test_skeleton_line_lists_the_reserved_codes(sequential_ids):
    mixed = "<Para\n<String `a'>\n<Char Tab>\n<String `b'>\n<Char Tab>\n<String `c'>\n>\n"
    result = import_mif(mixed, id_factory=sequential_ids)

    first = next(line for line in parse_skeleton(result.tskeleton) if line and line.kind == TU)
    assert first.strings == 3
    assert first.codes == ["1", "2"]
    assert result.formats.reserve() == "3"


def test_text_without_words_becomes_a_format_piece(sequential_ids):
    result = import_mif("<Para\n<String `* '>\n>\n", id_factory=sequential_ids)

    assert result.units == []
    assert result.tskeleton.splitlines() == [
        "<Para seq='1'>",
        "<String seq='2'>",
        "<format id='1' length='2' no='1' of='1'>",
        "</String seq='3'>",
        "</Para seq='4'>",
    ]
    assert result.formats.get("1") == "* "
    assert any(line and line.kind == FORMAT for line in parse_skeleton(result.tskeleton))


def test_detect_charset_from_mif_encoding():
    shift_jis = b"<MIFFile 9.00>\n<MIFEncoding `\x93\xfa\x96\x7b\x8c\xea'>\n"
    korean = b"<MIFFile 9.00>\n<MIFEncoding `\xc7\xd1\xb1\xb9\xbe\xee'>\n"

    assert detect_charset(shift_jis) == "shift_jis"
    assert detect_charset(korean) == "euc_kr"


def test_detect_charset_from_font_encoding():
    document = b"<MIFFile 9.00>\n<PgfFont \n <FEncoding `FrameRoman'>\n <FEncoding `JISX0208.ShiftJIS'>\n>\n"

    assert detect_charset(document) == "shift_jis"
    assert detect_charset(b"<MIFFile 9.00>\n<FEncoding `GB2312-80.EUC'>\n") == "gb2312"


def test_detect_charset_defaults_to_frameroman():
    assert detect_charset(b"<MIFFile 9.00>\n<Para\n<String `Caf\\x8e '>\n>\n") == DEFAULT_CHARSET
    assert detect_charset(b"<MIFEncoding `unknown'>\n") == DEFAULT_CHARSET


def test_shift_jis_text_is_decoded(sequential_ids):
    raw = "<MIFFile 9.00>\n<Para\n<String `日本語です'>\n>\n".encode("shift_jis")
    charset = detect_charset(b"<MIFEncoding `\x93\xfa\x96\x7b\x8c\xea'>\n" + raw)

    result = import_mif(raw.decode(charset), charset=charset, id_factory=sequential_ids)

    assert [unit.source for unit in result.units] == ["日本語です"]
