"""Delegation of binary office formats to an external office suite."""

from __future__ import annotations

import pathlib
import subprocess
from typing import List, Optional

from .errors import ExternalConverterError

DEFAULT_COMMAND = "soffice"


class OfficeConverter:
    """Runs the office suite headless to convert one file at a time.

    Failures raise ``ExternalConverterError`` immediately; retrying the whole
    conversion is left to the caller.
    """

    def __init__(self, command: str = DEFAULT_COMMAND, *, timeout: Optional[float] = None) -> None:
        self.command = command
        self.timeout = timeout

    def build_command(self, source: pathlib.Path, target_format: str, out_dir: pathlib.Path) -> List[str]:
        return [
            self.command,
            "--headless",
            "--convert-to",
            target_format,
            "--outdir",
            str(out_dir),
            str(source),
        ]

    def convert(
        self,
        source: pathlib.Path,
        target_format: str,
        out_dir: Optional[pathlib.Path] = None,
    ) -> pathlib.Path:
        """Convert ``source`` and return the path of the produced file."""

        source = pathlib.Path(source)
        out_dir = pathlib.Path(out_dir) if out_dir is not None else source.parent
        command = self.build_command(source, target_format, out_dir)
        try:
            subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ExternalConverterError(
                f"Office converter '{self.command}' is not installed"
            ) from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip()
            raise ExternalConverterError(
                f"Office converter exited with status {exc.returncode}: {detail}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalConverterError(
                f"Office converter timed out after {self.timeout} seconds"
            ) from exc

        extension = target_format.split(":", 1)[0]
        produced = out_dir / f"{source.stem}.{extension}"
        if not produced.exists():
            raise ExternalConverterError(f"Office converter did not produce {produced}")
        return produced
