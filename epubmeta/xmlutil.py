from __future__ import annotations

import re
from typing import Optional

from lxml import etree as LXML_ET

from .errors import MalformedXml

WHITESPACE_RE = re.compile(r"\s+")


def xml_root_from_bytes(raw: bytes, label: str) -> LXML_ET._Element:
    parser = LXML_ET.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = LXML_ET.fromstring(raw, parser=parser)
    except (LXML_ET.XMLSyntaxError, ValueError) as exc:
        raise MalformedXml(f"Cannot parse {label}: {exc}") from exc
    if root is None:
        raise MalformedXml(f"Cannot parse {label}: empty document")
    return root


def tag_local_name(tag: object) -> str:
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def child_by_local_name(node: LXML_ET._Element, local_name: str) -> Optional[LXML_ET._Element]:
    for child in node:
        if tag_local_name(child.tag) == local_name:
            return child
    return None


def iter_children_by_local_name(node: LXML_ET._Element, local_name: str) -> list[LXML_ET._Element]:
    return [child for child in node if tag_local_name(child.tag) == local_name]


def attr_by_local_name(node: LXML_ET._Element, local_name: str) -> Optional[str]:
    for key, value in node.attrib.items():
        if tag_local_name(key) == local_name:
            return value
    return None


def normalized_text(node: Optional[LXML_ET._Element], *, skip: frozenset[str] = frozenset()) -> str:
    """Join descendant text, collapsing whitespace runs to single spaces.

    Subtrees whose local name is in ``skip`` contribute nothing, but the text
    following them (their tail) still counts.
    """

    if node is None:
        return ""
    parts: list[str] = []
    _collect_text(node, skip, parts)
    return WHITESPACE_RE.sub(" ", "".join(parts)).strip()


def _collect_text(node: LXML_ET._Element, skip: frozenset[str], parts: list[str]) -> None:
    if node.text and isinstance(node.tag, str):
        parts.append(node.text)
    for child in node:
        if isinstance(child.tag, str) and tag_local_name(child.tag) not in skip:
            _collect_text(child, skip, parts)
        if child.tail:
            parts.append(child.tail)
