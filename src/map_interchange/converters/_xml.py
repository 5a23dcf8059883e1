"""Shared XML helpers for the GPX, KML and KMZ converters."""

import re
from typing import Any, Iterator, Optional

from lxml import etree

# Characters outside the XML 1.0 Char production.
_XML_ILLEGAL = re.compile(r"[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


def xml_text(value: Any) -> str:
    """Text with the characters XML 1.0 cannot carry removed."""
    if value is None:
        return ""
    return _XML_ILLEGAL.sub("", str(value))


def format_number(value: float) -> str:
    """Shortest round-tripping text for a coordinate or elevation."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def parse_xml(data: bytes | str) -> etree._Element:
    """
    Parse XML with entity resolution and network access disabled.

    Raises:
        etree.XMLSyntaxError: If the document is not well formed.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
    return etree.fromstring(data, parser=parser)


def sub_element(
    parent: etree._Element,
    name: str,
    text: Any = None,
    attrib: Optional[dict[str, str]] = None,
) -> etree._Element:
    """
    Append a child element.

    A bare ``name`` is placed in the parent's namespace; Clark notation
    (``{uri}name``) is used as given.
    """
    if not name.startswith("{"):
        namespace = etree.QName(parent).namespace
        if namespace:
            name = f"{{{namespace}}}{name}"
    element = etree.SubElement(parent, name, {k: xml_text(v) for k, v in (attrib or {}).items()})
    if text is not None:
        element.text = xml_text(text)
    return element


def to_xml_string(root: etree._Element) -> str:
    """Serialize a document with an XML declaration."""
    return etree.tostring(
        root, xml_declaration=True, encoding="UTF-8", pretty_print=True
    ).decode("utf-8")


def local_name(element: Any) -> str:
    """Tag name without namespace; empty for comments and PIs."""
    tag = getattr(element, "tag", None)
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def children(element: Any, name: str) -> Iterator[Any]:
    for child in element:
        if local_name(child) == name:
            yield child


def child(element: Any, name: str) -> Optional[Any]:
    return next(children(element, name), None)


def descendants(element: Any, name: str) -> Iterator[Any]:
    for node in element.iter():
        if node is not element and local_name(node) == name:
            yield node


def child_text(element: Any, name: str) -> Optional[str]:
    node = child(element, name)
    if node is None or node.text is None:
        return None
    return node.text.strip()
