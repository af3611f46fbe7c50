"""Error handling policy implementation."""

from __future__ import annotations

import sys
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord, MergeError

ANOMALY_CATEGORIES = frozenset({ErrorCategory.MERGE, ErrorCategory.RESOLUTION})


class ErrorPolicy:
    """Collects recoverable problems and decides whether work may continue."""

    def __init__(self, *, strict: bool = False, debug: bool = False) -> None:
        self.strict = strict
        self.debug = debug
        self.records: List[ErrorRecord] = []

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> str:
        """Record an error and return "continue", or raise in strict mode."""

        self.records.append(ErrorRecord(category=category, message=message, details=details))

        if self.debug:
            suffix = f" ({details})" if details else ""
            print(
                f"[skelmerge][{category.name.lower()}] {message}{suffix}",
                file=sys.stderr,
            )

        if self.strict and category in ANOMALY_CATEGORIES:
            raise MergeError(message if not details else f"{message} ({details})")

        return "continue"

    @property
    def degraded(self) -> bool:
        """True when any anomaly may have left the output misaligned."""

        return any(record.category in ANOMALY_CATEGORIES for record in self.records)

    def messages(self, category: ErrorCategory | None = None) -> List[str]:
        """Return recorded messages, optionally filtered by category."""

        return [
            record.message
            for record in self.records
            if category is None or record.category is category
        ]
