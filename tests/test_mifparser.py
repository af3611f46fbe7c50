import pytest

from skelmerge.errors import MifParseError
from skelmerge.mifparser import MifLineReader, MifParser, parse_mif, split_lines


def test_statement_events_with_arguments(recorder):
    parse_mif("<MIFFile 9.00>\n<Pgf <PgfTag `Body'>>\n", recorder)

    assert recorder.events[0] == ("startDocument",)
    assert recorder.events[-1] == ("endDocument",)
    assert recorder.body == [
        ("start", "MIFFile", {"0": "9.00"}),
        ("end", "MIFFile"),
        ("start", "Pgf", {}),
        ("start", "PgfTag", {"0": "`Body'"}),
        ("end", "PgfTag"),
        ("end", "Pgf"),
    ]


def test_multiple_arguments_collapse_spaces(recorder):
    parse_mif("<PgfFont   12.0 pt   `A B'>\n", recorder)

    assert recorder.body[0] == ("start", "PgfFont", {"0": "12.0", "1": "pt", "2": "`A B'"})


def test_string_contents_become_characters(recorder):
    parse_mif("<String `Hello world'>\n", recorder)

    assert recorder.body == [
        ("start", "String", {}),
        ("chars", "Hello world"),
        ("end", "String"),
    ]


def test_empty_string_still_reports_characters(recorder):
    parse_mif("<String `'>\n", recorder)

    assert ("chars", "") in recorder.body


def test_tab_inside_string_becomes_element(recorder):
    parse_mif("<String `a\\tb'>\n", recorder)

    assert recorder.body == [
        ("start", "String", {}),
        ("chars", "a"),
        ("start", "x-mif-tab", {}),
        ("end", "x-mif-tab"),
        ("chars", "b"),
        ("end", "String"),
    ]


def test_tab_outside_string_only_inside_paragraph(recorder):
    parse_mif("<Para\n\\t\n>\n<Other\n\\t\n>\n", recorder)

    assert recorder.body == [
        ("start", "Para", {}),
        ("start", "x-mif-tab", {}),
        ("end", "x-mif-tab"),
        ("end", "Para"),
        ("start", "Other", {}),
        ("end", "Other"),
    ]


def test_simple_escapes_become_entities(recorder):
    parse_mif(r"<String `x\>y\qz\Q\\'>" + "\n", recorder)

    assert recorder.body[1] == ("chars", "x&gt;y&apos;z&#x60;&#x5c;")


def test_markup_characters_are_escaped(recorder):
    parse_mif("<String `a & b < c # d'>\n", recorder)

    assert recorder.body[1] == ("chars", "a &amp; b &lt; c # d")


def test_hex_escape_decodes_through_charset(recorder):
    parse_mif(r"<String `\xd0 x'>" + "\n", recorder)

    assert recorder.body[1] == ("chars", "–x")


def test_hex_escape_without_charset_keeps_reference(recorder):
    parse_mif(r"<String `\xd0 '>" + "\n", recorder, charset="")

    assert recorder.body[1] == ("chars", "&#xd0;")


def test_hex_escape_with_unknown_charset_keeps_reference(recorder):
    parse_mif(r"<String `\x41 '>" + "\n", recorder, charset="no-such-charset")

    assert recorder.body[1] == ("chars", "&#x41;")


@pytest.mark.parametrize(
    "text",
    [
        r"<String `\xzz '>",
        r"<String `\xd0'>",
        r"<String `\z'>",
        "<String `abc\\",
    ],
)
def test_malformed_escapes_raise(recorder, text):
    with pytest.raises(MifParseError):
        parse_mif(text + "\n", recorder)


def test_unbalanced_close_reports_line(recorder):
    with pytest.raises(MifParseError) as excinfo:
        parse_mif("<A>\n>\n", recorder)

    assert excinfo.value.line_number == 2
    assert "(line 2)" in str(excinfo.value)


def test_comments_facets_and_macros_are_skipped(recorder):
    text = (
        "# a comment <Bogus\n"
        "define(Bullet, `Bullet Text')\n"
        "<Doc> # trailing <Ignored>\n"
        "=FrameImage\n"
        "&%v\n"
        "<junk\n"
        "=EndInset\n"
        "<Tail>\n"
    )
    parser = parse_mif(text, recorder)

    assert recorder.body == [
        ("start", "Doc", {}),
        ("end", "Doc"),
        ("start", "Tail", {}),
        ("end", "Tail"),
    ]
    assert parser.macros == {"Bullet": "Bullet Text"}


def test_apostrophe_outside_string_is_ignored(recorder):
    parse_mif("<A\n'\n>\n", recorder)

    assert recorder.body == [("start", "A", {}), ("end", "A")]


def test_inside_paragraph_tracks_open_para(recorder):
    seen = []

    class ParagraphWatcher(type(recorder)):
        def startElement(self, name, attrs):
            seen.append((name, parser.inside_paragraph))

    parser = MifParser(ParagraphWatcher())
    parser.parse("<Para\n<ParaLine\n>\n>\n<Pgf>\n")

    assert seen == [("Para", True), ("ParaLine", True), ("Pgf", False)]


def test_split_lines_only_breaks_on_line_terminators():
    assert split_lines("a\r\nb\rc\nd\x85e\x1cf\n") == ["a", "b", "c", "d\x85e\x1cf"]


def test_line_reader_numbers_lines():
    reader = MifLineReader("# skipped\n<A>\n")
    chars = []
    while True:
        char = reader.read()
        if not char:
            break
        chars.append(char)

    assert "".join(chars) == "<A>\n"
    assert reader.line_number == 2


def test_unread_stays_within_the_current_line():
    reader = MifLineReader("ab\ncd\n")
    reader.unread()
    assert reader.read() == "a"

    reader.unread()
    assert reader.read() == "a"
    assert [reader.read() for _ in range(3)] == ["b", "\n", "c"]

    reader.unread()
    reader.unread()
    reader.unread()
    assert reader.read() == "c"
