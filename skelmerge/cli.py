"""Command line interface for Skelmerge."""

from __future__ import annotations

import argparse
import pathlib
import re
import sys
from typing import Iterable, Optional

from .configuration import SkelmergeConfig, get_settings
from .converter import (
    SKELETON_SUFFIX,
    ConversionSummary,
    derive_paths,
    detect_kind,
    export_document,
    import_document,
    merge_document,
)
from .errors import (
    ConfigurationError,
    ExternalConverterError,
    SkelmergeError,
    UnsupportedFileTypeError,
)
from .mergers import MERGERS
from .office import OfficeConverter
from .policy import ErrorPolicy
from .resolver import FLAVORS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skelmerge",
        description=(
            "Build document skeletons with translation placeholders and turn them "
            "back into translated documents."
        ),
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting output files that already exist.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail instead of writing a skeleton that may be misaligned.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print every recorded problem to stderr.",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    import_parser = commands.add_parser("import", help="Extract a MIF document for translation.")
    import_parser.add_argument("input_file", help="Path to the .mif document.")
    import_parser.add_argument(
        "-w",
        "--work-dir",
        help="Directory for the XLIFF, skeleton and format files (default: next to the input).",
    )
    import_parser.add_argument(
        "-s",
        "--source-language",
        default="en",
        help="Source language code written to the XLIFF file (default: en).",
    )
    import_parser.add_argument(
        "-t",
        "--target-language",
        help="Target language code written to the XLIFF file.",
    )
    import_parser.add_argument(
        "--segment",
        action="store_true",
        help="Split strings into one translation unit per sentence.",
    )
    import_parser.add_argument(
        "--charset",
        help="Charset of MIF string text (default: detected from the document).",
    )

    merge_parser = commands.add_parser(
        "merge", help="Merge a temporary skeleton with its original document."
    )
    merge_parser.add_argument("original", help="Original document.")
    merge_parser.add_argument("tskeleton", help="Temporary skeleton describing the document.")
    merge_parser.add_argument(
        "-k",
        "--kind",
        choices=sorted(MERGERS),
        help="Document kind (default: detected from the file suffix).",
    )
    merge_parser.add_argument("-o", "--output", help="Skeleton path to write.")

    export_parser = commands.add_parser(
        "export", help="Resolve a skeleton into a translated document."
    )
    export_parser.add_argument("skeleton", help="Skeleton produced by import or merge.")
    export_parser.add_argument("-x", "--xliff", help="XLIFF file holding the translations.")
    export_parser.add_argument("--format", dest="format_file", help="Format table file.")
    export_parser.add_argument(
        "--flavor",
        choices=sorted(FLAVORS),
        help="Escaping rules of the output document (default: from the document suffix).",
    )
    export_parser.add_argument("-l", "--language", help="Target language to select in the XLIFF file.")
    export_parser.add_argument(
        "--charset",
        help="Charset for MIF output text (default: detected from the skeleton).",
    )
    export_parser.add_argument("-o", "--output", help="Translated document path to write.")

    office_parser = commands.add_parser(
        "office", help="Convert a binary office document with the office suite."
    )
    office_parser.add_argument("input_file", help="Document to convert.")
    office_parser.add_argument("--to", dest="target_format", required=True, help="Target format, e.g. odt.")
    office_parser.add_argument("-o", "--out-dir", help="Directory for the converted file.")
    office_parser.add_argument("--command", dest="office_command", help="Office suite executable.")
    return parser


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def document_path_for(skeleton_path: pathlib.Path) -> pathlib.Path:
    """Return the document a skeleton was built from (``a.mif.skeleton`` -> ``a.mif``)."""

    if skeleton_path.name.endswith(SKELETON_SUFFIX):
        return skeleton_path.with_name(skeleton_path.name[: -len(SKELETON_SUFFIX)])
    return skeleton_path


def derive_output_path(document_path: pathlib.Path, language: str | None) -> pathlib.Path:
    addition = sanitise_language_for_filename(language or "")
    candidate = f"{document_path.stem}_{addition}{document_path.suffix}"
    return document_path.with_name(candidate)


def default_flavor(document_path: pathlib.Path) -> str:
    try:
        return detect_kind(document_path)
    except UnsupportedFileTypeError:
        return "xml"


def _resolve(path: str) -> pathlib.Path:
    return pathlib.Path(path).expanduser().resolve()


def execute_command(
    args: argparse.Namespace,
    settings: SkelmergeConfig,
) -> tuple[int, ConversionSummary | None, str | None]:
    """Run one subcommand and return the exit code, summary, and message."""

    policy = ErrorPolicy(
        strict=bool(args.strict or settings.SKELMERGE_STRICT),
        debug=bool(args.debug or settings.SKELMERGE_DEBUG),
    )

    try:
        if args.command == "import":
            summary = import_document(
                _resolve(args.input_file),
                work_dir=_resolve(args.work_dir) if args.work_dir else None,
                charset=args.charset or settings.SKELMERGE_MIF_CHARSET,
                segment_sentences=bool(args.segment or settings.SKELMERGE_SEGMENT_SENTENCES),
                source_language=args.source_language,
                target_language=args.target_language or settings.SKELMERGE_TARGET_LANGUAGE,
                force_overwrite=args.force,
                policy=policy,
            )
        elif args.command == "merge":
            summary = merge_document(
                _resolve(args.original),
                _resolve(args.tskeleton),
                kind=args.kind,
                output_path=_resolve(args.output) if args.output else None,
                force_overwrite=args.force,
                policy=policy,
            )
        elif args.command == "export":
            skeleton_path = _resolve(args.skeleton)
            document_path = document_path_for(skeleton_path)
            paths = derive_paths(document_path)
            language = args.language or settings.SKELMERGE_TARGET_LANGUAGE
            summary = export_document(
                skeleton_path,
                _resolve(args.xliff) if args.xliff else paths.xliff,
                _resolve(args.output) if args.output else derive_output_path(document_path, language),
                format_path=_resolve(args.format_file) if args.format_file else paths.format,
                flavor=args.flavor or default_flavor(document_path),
                language=language,
                charset=args.charset or settings.SKELMERGE_MIF_CHARSET,
                force_overwrite=args.force,
                policy=policy,
            )
        else:
            converter = OfficeConverter(args.office_command or settings.SKELMERGE_OFFICE_COMMAND)
            produced = converter.convert(
                _resolve(args.input_file),
                args.target_format,
                _resolve(args.out_dir) if args.out_dir else None,
            )
            return 0, None, f"Converted document written to {produced}"
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except ExternalConverterError as exc:
        return 2, None, str(exc)
    except SkelmergeError as exc:
        return 1, None, str(exc)
    except OSError as exc:
        return 1, None, f"File error: {exc}"
    except KeyboardInterrupt:
        return 2, None, "Interrupted by user."

    return 0, summary, None


def print_summary(summary: ConversionSummary) -> None:
    """Output a friendly report once processing completes."""

    print(f"\n{summary.operation.capitalize()} complete.")
    print(f"  Input file:      {summary.input_path}")
    for output_path in summary.output_paths:
        print(f"  Output file:     {output_path}")
    print(f"  Document type:   {summary.document_type}")
    print(f"  Units:           {summary.total_units}")
    print(f"  Placeholders:    {summary.placeholders}")
    if summary.missing_translations:
        print(f"  Untranslated:    {summary.missing_translations}")
    print(f"  Status:          {summary.status}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.error_messages:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command is None:
        parser.error("a command is required: import, merge, export or office")

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(exc)
        return 1

    if args.verbose:
        print(f"Running {args.command}", file=sys.stderr)

    exit_code, summary, message = execute_command(args, settings)

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
