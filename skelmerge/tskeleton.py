"""Temporary skeleton line grammar shared by importers and mergers.

Each line records one structural event of the original document:

    <tagname attr='val' ... seq='N' [depth='D']>     begin tag
    </tagname attr='val' ... seq='N' [depth='D']>    end tag
    <tu id='UUID' length='L' [unique='U'] no='K' of='M'>
    <format id='N' length='L' no='K' of='M'>
    <attr name='A' tag='T' seq='N'> / </attr ...>    attribute value span
    <![CDATA[  /  ]]>                                CDATA delimiters

The first unit line of a MIF run may add strings='S' and codes='N N':
the run replaces S string literals and the markup between two of them is
stored under the listed format ids.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

LINE_PATTERN = re.compile(
    r"^<(?P<end>/?)(?P<name>[^\s/>]+)(?P<attrs>(?:\s+[^\s=>]+=(?:'[^']*'|\"[^\"]*\"))*)\s*/?>$"
)
ATTR_PATTERN = re.compile(r"([^\s=>]+)=(['\"])(.*?)\2")

TAG = "tag"
TU = "tu"
FORMAT = "format"
ATTR = "attr"
CDATA_START = "cdata-start"
CDATA_END = "cdata-end"
META = "meta"

_KIND_BY_NAME = {
    "tu": TU,
    "lt:tu": TU,
    "format": FORMAT,
    "lt:format": FORMAT,
    "attr": ATTR,
    "lt:attr": ATTR,
    "maxtudepth": META,
}


@dataclass
class SkeletonLine:
    """One parsed record of a temporary skeleton."""

    kind: str
    name: str
    is_end: bool = False
    attrs: Dict[str, str] = field(default_factory=dict)
    seq: Optional[int] = None
    depth: Optional[int] = None
    raw: str = ""

    @property
    def no(self) -> int:
        return _int_attr(self.attrs, "no", 1)

    @property
    def of(self) -> int:
        return _int_attr(self.attrs, "of", 1)

    @property
    def length(self) -> int:
        return _int_attr(self.attrs, "length", 0)

    @property
    def strings(self) -> int:
        """Number of MIF string literals the run starting here replaces."""

        return _int_attr(self.attrs, "strings", 1)

    @property
    def codes(self) -> List[str]:
        return self.attrs.get("codes", "").split()

    @property
    def ref(self) -> str:
        """Return the ``tu:ID`` / ``format:N`` token used in placeholders."""

        return f"{self.kind}:{self.attrs.get('id', '')}"

    @property
    def is_unit(self) -> bool:
        return self.kind in (TU, FORMAT)

    def get(self, key: str, default: str = "") -> str:
        return self.attrs.get(key, default)


def _int_attr(attrs: Dict[str, str], key: str, default: int) -> int:
    value = attrs.get(key)
    if value is None or not value.strip().isdigit():
        return default
    return int(value)


def parse_line(line: str) -> Optional[SkeletonLine]:
    """Parse one temporary skeleton line; return None when unrecognisable."""

    text = line.rstrip("\r\n")
    if text.startswith("<![CDATA["):
        return SkeletonLine(kind=CDATA_START, name="<![CDATA[", raw=text)
    if text.startswith("]]>"):
        return SkeletonLine(kind=CDATA_END, name="]]>", is_end=True, raw=text)

    match = LINE_PATTERN.match(text)
    if not match:
        return None

    attrs = {key: value for key, _, value in ATTR_PATTERN.findall(match.group("attrs"))}
    name = match.group("name")
    seq = attrs.pop("seq", None)
    depth = attrs.pop("depth", None)
    return SkeletonLine(
        kind=_KIND_BY_NAME.get(name, TAG),
        name=name,
        is_end=bool(match.group("end")),
        attrs=attrs,
        seq=int(seq) if seq and seq.isdigit() else None,
        depth=int(depth) if depth and depth.isdigit() else None,
        raw=text,
    )


def parse_skeleton(text: str) -> List[Optional[SkeletonLine]]:
    """Parse every non-blank line; unrecognisable lines are kept as None."""

    return [parse_line(line) for line in text.splitlines() if line.strip()]


def max_depth(lines: Iterable[Optional[SkeletonLine]]) -> int:
    """Return the deepest ``depth`` recorded on any line (at least 1)."""

    deepest = 1
    for line in lines:
        if line is not None and line.depth is not None:
            deepest = max(deepest, line.depth)
    return deepest


def _format_attrs(attrs: Dict[str, object]) -> str:
    return "".join(f" {key}='{value}'" for key, value in attrs.items() if value is not None)


def format_tag_line(
    name: str,
    *,
    seq: int,
    end: bool = False,
    depth: Optional[int] = None,
    **attrs: str,
) -> str:
    slash = "/" if end else ""
    extra = dict(attrs)
    extra["seq"] = str(seq)
    if depth is not None:
        extra["depth"] = str(depth)
    return f"<{slash}{name}{_format_attrs(extra)}>"


def _span_attrs(attrs: Dict[str, object], strings: Optional[int], codes: Sequence[str]) -> None:
    if strings is not None and strings > 1:
        attrs["strings"] = strings
    if codes:
        attrs["codes"] = " ".join(codes)


def format_tu_line(
    tu_id: str,
    *,
    length: int,
    no: int = 1,
    of: int = 1,
    depth: Optional[int] = None,
    unique: Optional[str] = None,
    strings: Optional[int] = None,
    codes: Sequence[str] = (),
) -> str:
    attrs: Dict[str, object] = {"id": tu_id, "length": length, "unique": unique}
    _span_attrs(attrs, strings, codes)
    if depth is not None:
        attrs["depth"] = depth
    attrs.update({"no": no, "of": of})
    return f"<tu{_format_attrs(attrs)}>"


def format_format_line(
    format_id: str,
    *,
    length: int = 0,
    no: int = 1,
    of: int = 1,
    depth: Optional[int] = None,
    strings: Optional[int] = None,
    codes: Sequence[str] = (),
) -> str:
    attrs: Dict[str, object] = {"id": format_id, "length": length}
    _span_attrs(attrs, strings, codes)
    if depth is not None:
        attrs["depth"] = depth
    attrs.update({"no": no, "of": of})
    return f"<format{_format_attrs(attrs)}>"


class SkeletonWriter:
    """Accumulates temporary skeleton lines with strictly increasing ``seq``."""

    def __init__(self) -> None:
        self.lines: List[str] = []
        self._seq = 0

    def next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def begin(self, name: str, **attrs: str) -> None:
        self.lines.append(format_tag_line(name, seq=self.next_seq(), **attrs))

    def end(self, name: str, **attrs: str) -> None:
        self.lines.append(format_tag_line(name, seq=self.next_seq(), end=True, **attrs))

    def tu(self, tu_id: str, *, length: int, no: int = 1, of: int = 1, **span) -> None:
        self.lines.append(format_tu_line(tu_id, length=length, no=no, of=of, **span))

    def format(self, format_id: str, *, length: int = 0, no: int = 1, of: int = 1, **span) -> None:
        self.lines.append(format_format_line(format_id, length=length, no=no, of=of, **span))

    def getvalue(self) -> str:
        return "".join(f"{line}\n" for line in self.lines)
