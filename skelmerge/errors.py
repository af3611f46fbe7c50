"""Error definitions for the skeleton merge engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises conversion errors so callers can choose retry or abort."""

    PARSE = auto()
    MERGE = auto()
    MISSING_TRANSLATION = auto()
    EXTERNAL_TOOL = auto()
    RESOLUTION = auto()
    ARGUMENT = auto()
    FILE_IO = auto()
    CONFIGURATION = auto()

    @property
    def fatal(self) -> bool:
        """True when an error of this category aborts the current document."""

        return self not in {
            ErrorCategory.MERGE,
            ErrorCategory.MISSING_TRANSLATION,
            ErrorCategory.RESOLUTION,
        }

    @property
    def caller_may_retry(self) -> bool:
        """True when rerunning the whole conversion can succeed unchanged."""

        return self is ErrorCategory.EXTERNAL_TOOL


class SkelmergeError(Exception):
    """Base exception for all custom errors."""

    category = ErrorCategory.ARGUMENT


class MifParseError(SkelmergeError):
    """Raised when MIF input is malformed beyond recovery."""

    category = ErrorCategory.PARSE

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)
        self.line_number = line_number


class SkeletonFormatError(SkelmergeError):
    """Raised when a temporary skeleton line cannot be understood."""

    category = ErrorCategory.PARSE


class MergeError(SkelmergeError):
    """Raised when a merge anomaly must not be tolerated."""

    category = ErrorCategory.MERGE


class BufferBoundsError(MergeError):
    """Raised when a buffer operation references an out-of-range offset."""


class ExternalConverterError(SkelmergeError):
    """Raised when the external office converter is unavailable or fails."""

    category = ErrorCategory.EXTERNAL_TOOL


class UnsupportedFileTypeError(SkelmergeError):
    """Raised when a given file extension is not supported."""

    category = ErrorCategory.ARGUMENT


class OverwriteRefusedError(SkelmergeError):
    """Raised when attempting to overwrite an output without consent."""

    category = ErrorCategory.FILE_IO


class ConfigurationError(SkelmergeError):
    """Raised when configuration sources are unreadable or invalid."""

    category = ErrorCategory.CONFIGURATION


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
