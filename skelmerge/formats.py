"""Format-code table: literal markup behind XLIFF ``bx``/``ex``/``x`` codes."""

from __future__ import annotations

import pathlib
from typing import Dict, Iterator, Optional, Union

from lxml import etree

from .errors import SkeletonFormatError
from .structures import FormatEntry

Source = Union[str, bytes, pathlib.Path]

CDATA_OPEN = "<![CDATA["
CDATA_CLOSE = "]]>"


def _xml_parser() -> etree.XMLParser:
    return etree.XMLParser(
        remove_blank_text=False,
        strip_cdata=False,
        resolve_entities=False,
        no_network=True,
    )


class FormatTable:
    """Maps small integer ids to the text that must be restored verbatim.

    When ``prepend_lt`` is set, entries were stored without their leading
    ``<`` and get it back on lookup.
    """

    def __init__(self, *, prepend_lt: bool = False) -> None:
        self.prepend_lt = prepend_lt
        self.entries: Dict[str, FormatEntry] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, format_id: object) -> bool:
        return str(format_id) in self.entries

    def __iter__(self) -> Iterator[FormatEntry]:
        return iter(self.entries.values())

    @classmethod
    def load(cls, source: Source) -> "FormatTable":
        """Read a ``.format`` file (path) or its raw bytes."""

        try:
            if isinstance(source, bytes):
                root = etree.fromstring(source, _xml_parser())
            else:
                root = etree.parse(str(source), _xml_parser()).getroot()
        except etree.XMLSyntaxError as exc:
            raise SkeletonFormatError(f"Unreadable format table: {exc}") from exc

        table = cls(prepend_lt=root.get("formatting") == "<")
        for tag in root.iter("tag"):
            format_id = tag.get("id")
            if format_id is None:
                continue
            table.entries[format_id] = FormatEntry(
                format_id=format_id,
                text=tag.text or "",
                recursive=tag.get("recursive") in ("yes", "true"),
                literal_cdata=tag.get("cdataTagIsLiteral") == "true",
            )
        numeric = [int(key) for key in table.entries if key.isdigit()]
        table._next_id = max(numeric, default=0) + 1
        return table

    def get(self, format_id: str) -> Optional[str]:
        """Return the replacement text, or None for an unknown id."""

        entry = self.entries.get(str(format_id))
        if entry is None:
            return None
        text = entry.text
        if entry.literal_cdata:
            text = f"{CDATA_OPEN}{text}{CDATA_CLOSE}"
        if text and self.prepend_lt:
            return f"<{text}"
        return text

    def add(self, text: str, *, recursive: bool = False, literal_cdata: bool = False) -> str:
        """Store ``text`` under a fresh id and return the id."""

        format_id = self.reserve()
        self.put(format_id, text, recursive=recursive, literal_cdata=literal_cdata)
        return format_id

    def reserve(self) -> str:
        """Hand out a fresh id whose text is supplied later with ``put``."""

        format_id = str(self._next_id)
        self._next_id += 1
        return format_id

    def put(
        self,
        format_id: str,
        text: str,
        *,
        recursive: bool = False,
        literal_cdata: bool = False,
    ) -> None:
        self.entries[format_id] = FormatEntry(
            format_id=format_id,
            text=text,
            recursive=recursive,
            literal_cdata=literal_cdata,
        )
        if format_id.isdigit():
            self._next_id = max(self._next_id, int(format_id) + 1)

    def to_bytes(self) -> bytes:
        root = etree.Element("tags")
        root.set("formatting", "<" if self.prepend_lt else "")
        root.text = "\n"
        for entry in self.entries.values():
            tag = etree.SubElement(root, "tag")
            tag.set("id", entry.format_id)
            if entry.recursive:
                tag.set("recursive", "yes")
            if entry.literal_cdata:
                tag.set("cdataTagIsLiteral", "true")
            # CDATA cannot hold its own terminator, and parsers turn a
            # carriage return inside it into a line feed.
            if not entry.text or CDATA_CLOSE in entry.text or "\r" in entry.text:
                tag.text = entry.text
            else:
                tag.text = etree.CDATA(entry.text)
            tag.tail = "\n"
        return etree.tostring(root, encoding="UTF-8", xml_declaration=True)

    def write(self, path: Union[str, pathlib.Path]) -> None:
        pathlib.Path(path).write_bytes(self.to_bytes())
