"""High-level orchestration for import, merge and export of documents."""

from __future__ import annotations

import pathlib
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .errors import OverwriteRefusedError, SkelmergeError, UnsupportedFileTypeError
from .formats import FormatTable
from .mergers import MergeStatus, MifSkeletonMerger, build_merger
from .mifimport import IdFactory, detect_charset, import_mif
from .policy import ErrorPolicy
from .resolver import PLACEHOLDER_PATTERN, PlaceholderResolver
from .structures import SkeletonPaths
from .tskeleton import TU, parse_skeleton
from .xliff import read_xliff, write_xliff

# MIF is handled byte for byte; latin-1 maps every byte to one character.
MIF_FILE_ENCODING = "latin-1"
TEXT_FILE_ENCODING = "utf-8"

KIND_BY_SUFFIX: Dict[str, str] = {
    ".mif": "mif",
    ".xml": "xml",
    ".xhtml": "xml",
    ".html": "html",
    ".htm": "html",
    ".fodt": "odf",
    ".odf": "odf",
}

XLIFF_SUFFIX = ".xliff"
SKELETON_SUFFIX = ".skeleton"
FORMAT_SUFFIX = ".format"
TSKELETON_SUFFIX = ".tskeleton"


@dataclass
class ConversionSummary:
    """Report returned after processing a document."""

    operation: str
    input_path: pathlib.Path
    output_paths: List[pathlib.Path]
    document_type: str
    total_units: int
    placeholders: int
    status: str
    elapsed_seconds: float
    missing_translations: int = 0
    error_messages: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.status == MergeStatus.DEGRADED.value


def detect_kind(path: pathlib.Path) -> str:
    """Map a file suffix to a merger kind."""

    kind = KIND_BY_SUFFIX.get(path.suffix.lower())
    if kind is None:
        raise UnsupportedFileTypeError(
            f"Unsupported file type '{path.suffix}'. Supported: "
            + ", ".join(sorted(KIND_BY_SUFFIX))
        )
    return kind


def file_encoding(kind: str) -> str:
    return MIF_FILE_ENCODING if kind == "mif" else TEXT_FILE_ENCODING


def derive_paths(input_path: pathlib.Path, work_dir: Optional[pathlib.Path] = None) -> SkeletonPaths:
    """Name the files kept next to ``input_path`` (or inside ``work_dir``)."""

    base = work_dir if work_dir is not None else input_path.parent
    name = input_path.name
    return SkeletonPaths(
        xliff=base / f"{name}{XLIFF_SUFFIX}",
        skeleton=base / f"{name}{SKELETON_SUFFIX}",
        format=base / f"{name}{FORMAT_SUFFIX}",
        tskeleton=base / f"{name}{TSKELETON_SUFFIX}",
    )


def validate_paths(
    input_path: pathlib.Path,
    output_paths: Sequence[pathlib.Path],
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    if not input_path.is_file():
        raise SkelmergeError("Input path must be a file.")

    for output_path in output_paths:
        if input_path.resolve() == output_path.resolve():
            raise OverwriteRefusedError(
                "The output path matches the input document. Refusing to overwrite the source file."
            )
        if output_path.exists() and not force_overwrite:
            raise OverwriteRefusedError(
                f"The output file {output_path} already exists. Rename it or use the overwrite flag."
            )


def import_document(
    input_path: pathlib.Path,
    *,
    work_dir: Optional[pathlib.Path] = None,
    charset: Optional[str] = None,
    segment_sentences: bool = False,
    source_language: str = "en",
    target_language: Optional[str] = None,
    force_overwrite: bool = False,
    policy: Optional[ErrorPolicy] = None,
    id_factory: Optional[IdFactory] = None,
) -> ConversionSummary:
    """Import a MIF document into XLIFF, format table and skeleton.

    Without ``charset`` the string charset is detected from the document.
    """

    start_time = time.time()
    policy = policy or ErrorPolicy()
    kind = detect_kind(input_path)
    if kind != "mif":
        raise UnsupportedFileTypeError(
            f"No importer for '{input_path.suffix}' documents; only MIF can be imported."
        )

    paths = derive_paths(input_path, work_dir)
    outputs = [paths.xliff, paths.skeleton, paths.format, paths.tskeleton]
    validate_paths(input_path, outputs, force_overwrite)

    raw = input_path.read_bytes()
    original = raw.decode(MIF_FILE_ENCODING)
    charset = charset or detect_charset(raw)
    parser_text = raw.decode(charset, errors="replace")

    extracted = import_mif(
        parser_text,
        charset=charset,
        segment_sentences=segment_sentences,
        id_factory=id_factory,
    )
    paths.tskeleton.write_text(extracted.tskeleton, encoding=TEXT_FILE_ENCODING)

    merger = MifSkeletonMerger(policy=policy, formats=extracted.formats)
    merge_result = merger.merge(original, extracted.tskeleton)
    paths.skeleton.write_bytes(merge_result.skeleton.encode(MIF_FILE_ENCODING, errors="replace"))

    write_xliff(
        extracted.units,
        paths.xliff,
        original=input_path.name,
        source_language=source_language,
        target_language=target_language,
        datatype="x-mif",
    )
    extracted.formats.write(paths.format)

    return ConversionSummary(
        operation="import",
        input_path=input_path,
        output_paths=outputs,
        document_type=kind,
        total_units=len(extracted.units),
        placeholders=len(merge_result.placeholders),
        status=merge_result.status.value,
        elapsed_seconds=time.time() - start_time,
        error_messages=[record.message for record in merge_result.records],
    )


def merge_document(
    original_path: pathlib.Path,
    tskeleton_path: pathlib.Path,
    *,
    kind: Optional[str] = None,
    output_path: Optional[pathlib.Path] = None,
    force_overwrite: bool = False,
    policy: Optional[ErrorPolicy] = None,
) -> ConversionSummary:
    """Merge a temporary skeleton produced elsewhere with its original."""

    start_time = time.time()
    kind = kind or detect_kind(original_path)
    output_path = output_path or derive_paths(original_path).skeleton
    outputs = [output_path]
    if kind == "mif":
        outputs.append(output_path.with_suffix(FORMAT_SUFFIX))
    validate_paths(original_path, outputs, force_overwrite)
    if not tskeleton_path.is_file():
        raise FileNotFoundError(f"Temporary skeleton not found: {tskeleton_path}")

    encoding = file_encoding(kind)
    original = original_path.read_bytes().decode(encoding)
    tskeleton = tskeleton_path.read_text(encoding=TEXT_FILE_ENCODING)

    merger = build_merger(kind, policy=policy)
    result = merger.merge(original, tskeleton)
    output_path.write_bytes(result.skeleton.encode(encoding, errors="replace"))
    if isinstance(merger, MifSkeletonMerger):
        merger.formats.write(outputs[1])

    return ConversionSummary(
        operation="merge",
        input_path=original_path,
        output_paths=outputs,
        document_type=kind,
        total_units=sum(1 for line in parse_skeleton(tskeleton) if line and line.kind == TU),
        placeholders=len(result.placeholders),
        status=result.status.value,
        elapsed_seconds=time.time() - start_time,
        error_messages=[record.message for record in result.records],
    )


def export_document(
    skeleton_path: pathlib.Path,
    xliff_path: pathlib.Path,
    output_path: pathlib.Path,
    *,
    format_path: Optional[pathlib.Path] = None,
    flavor: str = "xml",
    language: Optional[str] = None,
    charset: Optional[str] = None,
    force_overwrite: bool = False,
    policy: Optional[ErrorPolicy] = None,
) -> ConversionSummary:
    """Resolve the placeholders of a skeleton into a translated document.

    MIF targets are written in ``charset``, detected from the skeleton when
    not given.
    """

    start_time = time.time()
    policy = policy or ErrorPolicy()
    validate_paths(skeleton_path, [output_path], force_overwrite)
    if not xliff_path.is_file():
        raise FileNotFoundError(f"XLIFF file not found: {xliff_path}")

    encoding = file_encoding(flavor)
    raw = skeleton_path.read_bytes()
    skeleton = raw.decode(encoding)
    if flavor == "mif" and charset is None:
        charset = detect_charset(raw)
    store = read_xliff(xliff_path, language=language)
    formats = FormatTable.load(format_path) if format_path and format_path.is_file() else FormatTable()

    resolver = PlaceholderResolver(store, formats, flavor=flavor, policy=policy, charset=charset)
    result = resolver.resolve(skeleton)
    output_path.write_bytes(result.text.encode(encoding, errors="replace"))

    return ConversionSummary(
        operation="export",
        input_path=skeleton_path,
        output_paths=[output_path],
        document_type=flavor,
        total_units=len(store),
        placeholders=len(PLACEHOLDER_PATTERN.findall(skeleton)),
        status=(MergeStatus.DEGRADED if result.degraded else MergeStatus.SUCCEEDED).value,
        elapsed_seconds=time.time() - start_time,
        missing_translations=len(result.missing),
        error_messages=[record.message for record in result.records],
    )
