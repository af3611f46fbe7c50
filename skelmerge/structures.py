"""Core data structures for the skeleton merge engine."""

from __future__ import annotations

import pathlib
from dataclasses import dataclass
from typing import Optional


@dataclass
class TranslationUnit:
    """A translatable run of text extracted from a native document.

    ``source`` and ``target`` hold XLIFF inline markup (escaped text with
    optional ``bx``/``ex``/``x`` codes).
    """

    tu_id: str
    source: str
    target: Optional[str] = None
    next_tu_id: Optional[str] = None
    paragraph_id: Optional[str] = None
    mergeable: bool = False


@dataclass
class FormatEntry:
    """Literal markup restored verbatim in place of an inline code."""

    format_id: str
    text: str
    recursive: bool = False
    literal_cdata: bool = False


@dataclass
class SkeletonPaths:
    """File names produced and consumed around one native document."""

    xliff: pathlib.Path
    skeleton: pathlib.Path
    format: pathlib.Path
    tskeleton: pathlib.Path
