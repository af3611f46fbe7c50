"""Reading and writing XLIFF 1.2 documents with lxml."""

from __future__ import annotations

import pathlib
from typing import Iterable, Optional, Union
from xml.sax.saxutils import escape

from lxml import etree

from .errors import SkeletonFormatError
from .structures import TranslationUnit
from .tustore import TuStore

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
EXT_NS = "urn:skelmerge:xliff-extensions"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

NEXT_ATTRS = ("next-tu-id", "nextTuId")
PARAGRAPH_ATTRS = ("paragraph-id", "paraID")
MERGEABLE_ATTRS = ("mergeable",)

Source = Union[str, bytes, pathlib.Path]


def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        remove_blank_text=False,
        strip_cdata=False,
        resolve_entities=False,
        no_network=True,
    )


def _strip_namespaces(root: etree._Element) -> None:
    """Drop namespaces so inline markup serialises without declarations."""

    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        if "}" in element.tag:
            element.tag = etree.QName(element).localname
        for key in list(element.attrib):
            if "}" in key and key != XML_LANG:
                value = element.attrib.pop(key)
                element.set(etree.QName(key).localname, value)
    etree.cleanup_namespaces(root)


def _ext_attr(element: etree._Element, names: Iterable[str]) -> Optional[str]:
    for key, value in element.attrib.items():
        if etree.QName(key).localname in names:
            return value
    return None


def inner_markup(element: Optional[etree._Element]) -> str:
    """Serialise the content of ``element`` (escaped text plus child tags)."""

    if element is None:
        return ""
    parts = [escape(element.text or "")]
    for child in element:
        parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts)


def _lang_matches(element: etree._Element, language: str) -> bool:
    value = (element.get(XML_LANG) or element.get("lang") or "").lower()
    wanted = language.lower()
    return value == wanted or value.split("-")[0] == wanted.split("-")[0]


def _select_target(trans_unit: etree._Element, language: Optional[str]) -> Optional[etree._Element]:
    targets = trans_unit.findall("target")
    if language is None:
        return targets[0] if targets else None
    for target in targets:
        if _lang_matches(target, language):
            return target
    for alt in trans_unit.findall("alt-trans"):
        for target in alt.findall("target"):
            if _lang_matches(target, language):
                return target
    # A target without xml:lang belongs to the file's target language.
    for target in targets:
        if target.get(XML_LANG) is None:
            return target
    return None


def read_xliff(source: Source, *, language: Optional[str] = None) -> TuStore:
    """Load every trans-unit of an XLIFF document into a ``TuStore``."""

    try:
        if isinstance(source, bytes):
            root = etree.fromstring(source, _parser())
        else:
            root = etree.parse(str(source), _parser()).getroot()
    except etree.XMLSyntaxError as exc:
        raise SkeletonFormatError(f"Unreadable XLIFF document: {exc}") from exc

    _strip_namespaces(root)
    store = TuStore()
    for trans_unit in root.iter("trans-unit"):
        tu_id = trans_unit.get("id")
        if not tu_id:
            continue
        target_element = _select_target(trans_unit, language)
        target = inner_markup(target_element) if target_element is not None else None
        store.add(
            TranslationUnit(
                tu_id=tu_id,
                source=inner_markup(trans_unit.find("source")),
                target=target or None,
                next_tu_id=_ext_attr(trans_unit, NEXT_ATTRS),
                paragraph_id=_ext_attr(trans_unit, PARAGRAPH_ATTRS),
                mergeable=_ext_attr(trans_unit, MERGEABLE_ATTRS) == "true",
            )
        )
    return store


def _fragment(name: str, markup: str, language: Optional[str]) -> etree._Element:
    try:
        element = etree.fromstring(f'<{name} xmlns="{XLIFF_NS}">{markup}</{name}>', _parser())
    except etree.XMLSyntaxError as exc:
        raise SkeletonFormatError(f"Inline markup is not well formed: {markup!r}") from exc
    if language:
        element.set(XML_LANG, language)
    return element


def build_xliff(
    units: Iterable[TranslationUnit],
    *,
    original: str,
    source_language: str,
    target_language: Optional[str] = None,
    datatype: str = "plaintext",
) -> etree._Element:
    root = etree.Element(f"{{{XLIFF_NS}}}xliff", nsmap={None: XLIFF_NS, "lt": EXT_NS})
    root.set("version", "1.2")
    file_element = etree.SubElement(root, f"{{{XLIFF_NS}}}file")
    file_element.set("original", original)
    file_element.set("source-language", source_language)
    if target_language:
        file_element.set("target-language", target_language)
    file_element.set("datatype", datatype)
    etree.SubElement(file_element, f"{{{XLIFF_NS}}}header")
    body = etree.SubElement(file_element, f"{{{XLIFF_NS}}}body")
    body.text = "\n"

    for unit in units:
        trans_unit = etree.SubElement(body, f"{{{XLIFF_NS}}}trans-unit")
        trans_unit.set("id", unit.tu_id)
        if unit.paragraph_id:
            trans_unit.set(f"{{{EXT_NS}}}paragraph-id", unit.paragraph_id)
        if unit.next_tu_id:
            trans_unit.set(f"{{{EXT_NS}}}next-tu-id", unit.next_tu_id)
        if unit.mergeable:
            trans_unit.set(f"{{{EXT_NS}}}mergeable", "true")
        trans_unit.append(_fragment("source", unit.source, source_language))
        if unit.target is not None:
            trans_unit.append(_fragment("target", unit.target, target_language))
        trans_unit.tail = "\n"
    return root


def write_xliff(
    units: Iterable[TranslationUnit],
    path: Union[str, pathlib.Path],
    **options,
) -> None:
    root = build_xliff(units, **options)
    etree.ElementTree(root).write(str(path), encoding="UTF-8", xml_declaration=True)
