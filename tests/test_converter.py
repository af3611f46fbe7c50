import pathlib

import pytest

from skelmerge.converter import (
    derive_paths,
    detect_kind,
    export_document,
    import_document,
    merge_document,
    validate_paths,
)
from skelmerge.errors import OverwriteRefusedError, SkelmergeError, UnsupportedFileTypeError
from skelmerge.formats import FormatTable
from skelmerge.mifimport import import_mif
from skelmerge.policy import ErrorPolicy
from skelmerge.structures import TranslationUnit
from skelmerge.xliff import read_xliff, write_xliff

MIF = (
    "<MIFFile 9.00> # Generated\n"
    "<Para \n"
    " <PgfTag `Body'>\n"
    " <ParaLine \n"
    "  <String `Hello'>\n"
    " >\n"
    ">\n"
    "<Para \n"
    " <ParaLine \n"
    "  <String `Caf\\x8e  \\> x'>\n"
    " >\n"
    ">\n"
)


@pytest.fixture
def mif_document(tmp_path) -> pathlib.Path:
    path = tmp_path / "doc.mif"
    path.write_bytes(MIF.encode("latin-1"))
    return path


def translate(xliff_path: pathlib.Path, targets) -> None:
    store = read_xliff(xliff_path)
    units = [
        TranslationUnit(unit.tu_id, unit.source, target=targets.get(unit.tu_id))
        for unit in store
    ]
    write_xliff(units, xliff_path, original="doc.mif", source_language="en", target_language="fr")


def test_derive_paths_next_to_input_or_in_work_dir(tmp_path):
    paths = derive_paths(tmp_path / "a.mif")

    assert paths.xliff == tmp_path / "a.mif.xliff"
    assert paths.skeleton == tmp_path / "a.mif.skeleton"
    assert paths.format == tmp_path / "a.mif.format"
    assert paths.tskeleton == tmp_path / "a.mif.tskeleton"
    assert derive_paths(tmp_path / "a.mif", tmp_path / "work").xliff == tmp_path / "work" / "a.mif.xliff"


def test_detect_kind():
    assert detect_kind(pathlib.Path("a.MIF")) == "mif"
    assert detect_kind(pathlib.Path("a.htm")) == "html"
    assert detect_kind(pathlib.Path("content.fodt")) == "odf"
    with pytest.raises(UnsupportedFileTypeError):
        detect_kind(pathlib.Path("a.docx"))


def test_validate_paths(tmp_path):
    source = tmp_path / "in.mif"
    existing = tmp_path / "out.mif"

    with pytest.raises(FileNotFoundError):
        validate_paths(source, [existing], False)

    source.write_text("<A>\n")
    existing.write_text("x")
    with pytest.raises(SkelmergeError, match="must be a file"):
        validate_paths(tmp_path, [existing], False)
    with pytest.raises(OverwriteRefusedError):
        validate_paths(source, [source], True)
    with pytest.raises(OverwriteRefusedError):
        validate_paths(source, [existing], False)
    validate_paths(source, [existing], True)


def test_import_writes_all_files(mif_document, sequential_ids):
    summary = import_document(mif_document, id_factory=sequential_ids)
    paths = derive_paths(mif_document)

    assert summary.operation == "import"
    assert summary.total_units == 2
    assert summary.placeholders == 2
    assert summary.status == "succeeded"
    assert not summary.degraded
    assert all(path.exists() for path in summary.output_paths)

    skeleton = paths.skeleton.read_bytes().decode("latin-1")
    assert "<String `<lt:tu id='tu1'/>'>" in skeleton
    assert "<String `<lt:tu id='tu2'/>'>" in skeleton
    assert "# Generated" in skeleton

    store = read_xliff(paths.xliff)
    assert [unit.source for unit in store] == ["Hello", "Café &gt; x"]


def test_import_refuses_to_overwrite(mif_document, sequential_ids):
    import_document(mif_document, id_factory=sequential_ids)

    with pytest.raises(OverwriteRefusedError):
        import_document(mif_document)
    import_document(mif_document, force_overwrite=True)


def test_import_only_accepts_mif(tmp_path):
    document = tmp_path / "doc.xml"
    document.write_text("<doc/>")

    with pytest.raises(UnsupportedFileTypeError):
        import_document(document)


def test_mif_round_trip(mif_document, sequential_ids, tmp_path):
    import_document(mif_document, id_factory=sequential_ids)
    paths = derive_paths(mif_document)
    translate(paths.xliff, {"tu1": "Bonjour", "tu2": "Café &gt; x"})
    output = tmp_path / "doc_fr.mif"

    summary = export_document(
        paths.skeleton, paths.xliff, output, format_path=paths.format, flavor="mif"
    )

    assert output.read_bytes().decode("latin-1") == MIF.replace("Hello", "Bonjour")
    assert summary.placeholders == 2
    assert summary.missing_translations == 0
    assert summary.status == "succeeded"


def test_export_reports_missing_translations(mif_document, sequential_ids, tmp_path):
    import_document(mif_document, id_factory=sequential_ids)
    paths = derive_paths(mif_document)
    translate(paths.xliff, {"tu1": "Bonjour"})
    output = tmp_path / "out.mif"

    summary = export_document(paths.skeleton, paths.xliff, output, flavor="mif")

    assert summary.missing_translations == 1
    assert "[Segment 2 not yet translated: Caf\\x8e  \\> x]" in output.read_bytes().decode("latin-1")
    assert summary.error_messages == ["Segment tu2 not yet translated"]


def test_export_requires_xliff(mif_document, tmp_path):
    with pytest.raises(FileNotFoundError):
        export_document(mif_document, tmp_path / "none.xliff", tmp_path / "out.mif")


def test_merge_document_writes_skeleton(tmp_path):
    original = tmp_path / "doc.xml"
    original.write_text("<doc><p>Hi</p></doc>", encoding="utf-8")
    tskeleton = tmp_path / "doc.xml.tskeleton"
    tskeleton.write_text(
        "<doc seq='1'>\n"
        "<p inText='entering' seq='2'>\n"
        "<tu id='t1' length='2' no='1' of='1'>\n"
        "</p inText='leaving' seq='3'>\n"
        "</doc seq='4'>\n",
        encoding="utf-8",
    )

    summary = merge_document(original, tskeleton)

    assert summary.document_type == "xml"
    assert summary.total_units == 1
    assert summary.output_paths == [tmp_path / "doc.xml.skeleton"]
    assert (tmp_path / "doc.xml.skeleton").read_text(encoding="utf-8") == (
        "<doc><p><lt:tu id='t1'/></p></doc>"
    )


def test_merge_document_degraded_and_strict(tmp_path):
    original = tmp_path / "doc.xml"
    original.write_text("<doc/>", encoding="utf-8")
    tskeleton = tmp_path / "doc.tskeleton"
    tskeleton.write_text("<missing seq='1'>\n", encoding="utf-8")

    summary = merge_document(original, tskeleton, kind="xml")
    assert summary.degraded
    assert summary.error_messages == ["Cannot find tag <missing"]

    with pytest.raises(SkelmergeError):
        merge_document(
            original, tskeleton, force_overwrite=True, policy=ErrorPolicy(strict=True)
        )


STYLED_MIF = (
    "<MIFFile 9.00>\n"
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


def test_styled_paragraph_round_trip(tmp_path, sequential_ids):
    document = tmp_path / "styled.mif"
    document.write_bytes(STYLED_MIF.encode("latin-1"))
    import_document(document, id_factory=sequential_ids)
    paths = derive_paths(document)

    store = read_xliff(paths.xliff)
    assert [unit.source for unit in store] == ['Hello <x id="1" ctype="x-mif-Font"/>world']
    translate(paths.xliff, {"tu1": "Bonjour <x id='1' ctype='x-mif-Font'/>monde"})
    output = tmp_path / "styled_fr.mif"

    summary = export_document(
        paths.skeleton, paths.xliff, output, format_path=paths.format, flavor="mif"
    )

    expected = STYLED_MIF.replace("Hello ", "Bonjour ").replace("world", "monde")
    assert output.read_bytes().decode("latin-1") == expected
    assert summary.status == "succeeded"


def test_merge_document_writes_mif_format_table(tmp_path, sequential_ids):
    document = tmp_path / "styled.mif"
    document.write_bytes(STYLED_MIF.encode("latin-1"))
    tskeleton = tmp_path / "styled.mif.tskeleton"
    tskeleton.write_text(import_mif(STYLED_MIF, id_factory=sequential_ids).tskeleton, encoding="utf-8")

    summary = merge_document(document, tskeleton)

    format_path = tmp_path / "styled.mif.format"
    assert summary.output_paths == [tmp_path / "styled.mif.skeleton", format_path]
    assert FormatTable.load(format_path).get("1").startswith("'>\n  <Font")


SHIFT_JIS_HEADER = b"<MIFFile 9.00>\n<MIFEncoding `\x93\xfa\x96\x7b\x8c\xea'>\n"


def test_shift_jis_document_round_trip(tmp_path, sequential_ids):
    document = tmp_path / "ja.mif"
    body = "<Para\n <String `日本語です'>\n>\n"
    document.write_bytes(SHIFT_JIS_HEADER + body.encode("shift_jis"))

    import_document(document, id_factory=sequential_ids)
    paths = derive_paths(document)
    assert [unit.source for unit in read_xliff(paths.xliff)] == ["日本語です"]

    translate(paths.xliff, {"tu1": "テキスト"})
    output = tmp_path / "ja_out.mif"
    export_document(paths.skeleton, paths.xliff, output, format_path=paths.format, flavor="mif")

    expected = SHIFT_JIS_HEADER + "<Para\n <String `テキスト'>\n>\n".encode("shift_jis")
    assert output.read_bytes() == expected
