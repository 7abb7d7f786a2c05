from __future__ import annotations

import logging
import zipfile
from typing import Iterator, Mapping, Optional

from lxml import etree as LXML_ET

from .container import read_member
from .errors import MalformedXml, MissingTocReference
from .models import Toc, TocNode
from .package import EpubVersion, PackageDocument
from .paths import resolve_href
from .xmlutil import (
    attr_by_local_name,
    child_by_local_name,
    iter_children_by_local_name,
    normalized_text,
    tag_local_name,
    xml_root_from_bytes,
)

NCX_MEDIA_TYPE = "application/x-dtbncx+xml"

logger = logging.getLogger("epubmeta.toc")


def _check_depth(depth: int, max_depth: int, doc_path: str) -> None:
    if depth > max_depth:
        raise MalformedXml(f"{doc_path}: table of contents nests deeper than {max_depth} levels")


def _read_toc_document(
    archive: zipfile.ZipFile, index: dict[str, str], path: str, label: str
) -> LXML_ET._Element:
    raw = read_member(archive, index, path)
    if raw is None:
        raise MissingTocReference(f"{label} {path} is listed in the manifest but missing from the container")
    return xml_root_from_bytes(raw, path)


def _ncx_nav_point(point: LXML_ET._Element, ncx_path: str, depth: int, max_depth: int) -> TocNode:
    _check_depth(depth, max_depth, ncx_path)
    label = child_by_local_name(point, "navLabel")
    title = normalized_text(child_by_local_name(label, "text") if label is not None else None)

    href = None
    content = child_by_local_name(point, "content")
    if content is not None:
        src = str(content.attrib.get("src") or "").strip()
        if src:
            href = resolve_href(ncx_path, src)

    children = [
        _ncx_nav_point(child, ncx_path, depth + 1, max_depth)
        for child in iter_children_by_local_name(point, "navPoint")
    ]
    return TocNode(title=title, href=href, children=tuple(children) if children else None)


def parse_ncx(root: LXML_ET._Element, ncx_path: str, max_depth: int) -> Toc:
    nav_map = child_by_local_name(root, "navMap")
    if nav_map is None:
        raise MalformedXml(f"{ncx_path}: NCX document has no <navMap>")
    return Toc(
        contents=tuple(
            _ncx_nav_point(point, ncx_path, 1, max_depth)
            for point in iter_children_by_local_name(nav_map, "navPoint")
        )
    )


def _ncx_path(package: PackageDocument) -> str:
    toc_id = package.legacy_toc_id
    if not toc_id:
        raise MissingTocReference(f"{package.path}: EPUB 2 spine has no toc attribute")
    item = package.items_by_id.get(toc_id)
    if item is None:
        raise MissingTocReference(f"{package.path}: spine toc {toc_id!r} has no manifest item")
    if item.media_type and item.media_type != NCX_MEDIA_TYPE:
        logger.debug("NCX item %s declares media type %s", item.path, item.media_type)
    return item.path


def _nav_document_path(package: PackageDocument) -> str:
    for item in package.items_by_id.values():
        if "nav" in item.properties:
            return item.path
    raise MissingTocReference(f"{package.path}: no manifest item has the nav property")


def _find_toc_nav(root: LXML_ET._Element) -> Optional[LXML_ET._Element]:
    navs = [node for node in root.iter() if tag_local_name(node.tag) == "nav"]
    for nav in navs:
        nav_type = str(attr_by_local_name(nav, "type") or "").split()
        if "toc" in nav_type:
            return nav
    for nav in navs:
        if nav.attrib.get("id") == "toc":
            return nav
    return None


def _nav_li(li: LXML_ET._Element, nav_path: str, depth: int, max_depth: int) -> TocNode:
    _check_depth(depth, max_depth, nav_path)
    href = None
    anchor = child_by_local_name(li, "a")
    if anchor is not None:
        title = normalized_text(anchor)
        raw_href = anchor.attrib.get("href")
        if raw_href is not None:
            href = resolve_href(nav_path, raw_href)
    else:
        span = child_by_local_name(li, "span")
        title = normalized_text(span) if span is not None else normalized_text(li, skip=frozenset({"ol"}))

    children = None
    nested = child_by_local_name(li, "ol")
    if nested is not None:
        nodes = _nav_ol(nested, nav_path, depth + 1, max_depth)
        children = nodes or None
    return TocNode(title=title, href=href, children=children)


def _nav_ol(ol: LXML_ET._Element, nav_path: str, depth: int, max_depth: int) -> tuple[TocNode, ...]:
    return tuple(_nav_li(li, nav_path, depth, max_depth) for li in iter_children_by_local_name(ol, "li"))


def parse_nav(root: LXML_ET._Element, nav_path: str, max_depth: int) -> Toc:
    nav = _find_toc_nav(root)
    if nav is None:
        raise MissingTocReference(f"{nav_path}: no <nav epub:type=\"toc\"> element")
    ol = child_by_local_name(nav, "ol")
    if ol is None:
        raise MalformedXml(f"{nav_path}: toc <nav> has no <ol>")
    return Toc(contents=_nav_ol(ol, nav_path, 1, max_depth))


def iter_nodes(toc: Toc) -> Iterator[TocNode]:
    stack = list(reversed(toc.contents))
    while stack:
        node = stack.pop()
        yield node
        if node.children:
            stack.extend(reversed(node.children))


def unmatched_hrefs(toc: Toc, manifest: Mapping[str, Optional[str]]) -> list[str]:
    unmatched: list[str] = []
    for node in iter_nodes(toc):
        if node.href is not None and node.href not in manifest and node.href not in unmatched:
            unmatched.append(node.href)
    return unmatched


def resolve_toc(
    package: PackageDocument, archive: zipfile.ZipFile, index: dict[str, str], max_depth: int
) -> Toc:
    """Build the table of contents from the NCX (EPUB 2) or nav document (EPUB 3)."""

    if package.version is EpubVersion.EPUB2:
        ncx_path = _ncx_path(package)
        toc = parse_ncx(_read_toc_document(archive, index, ncx_path, "NCX"), ncx_path, max_depth)
    else:
        nav_path = _nav_document_path(package)
        toc = parse_nav(_read_toc_document(archive, index, nav_path, "Navigation document"), nav_path, max_depth)

    for href in unmatched_hrefs(toc, package.manifest):
        logger.warning("table of contents points at %s, which is not in the manifest", href)
    return toc
