from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from lxml import etree as LXML_ET

from .errors import DanglingSpineReference, MalformedXml, MissingTitle, UnsupportedVersion
from .paths import normalize, parent_dir
from .xmlutil import (
    attr_by_local_name,
    child_by_local_name,
    iter_children_by_local_name,
    tag_local_name,
    xml_root_from_bytes,
)

OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"

logger = logging.getLogger("epubmeta.package")


class EpubVersion(enum.Enum):
    EPUB2 = "2"
    EPUB3 = "3"

    @classmethod
    def from_attribute(cls, value: Optional[str]) -> "EpubVersion":
        cleaned = (value or "").strip()
        for version in cls:
            if cleaned.startswith(version.value):
                return version
        raise UnsupportedVersion(f"Unsupported package version: {value!r}")


@dataclass
class ManifestItem:
    item_id: str
    href: str
    media_type: Optional[str]
    properties: set[str]
    path: str


@dataclass
class PackageDocument:
    path: str
    title: str
    version: EpubVersion
    manifest: dict[str, Optional[str]] = field(default_factory=dict)
    items_by_id: dict[str, ManifestItem] = field(default_factory=dict)
    spine: list[str] = field(default_factory=list)
    legacy_toc_id: Optional[str] = None
    language: Optional[str] = None
    cover_path: Optional[str] = None


def _section(root: LXML_ET._Element, local_name: str) -> Optional[LXML_ET._Element]:
    node = root.find(f"{{{OPF_NS}}}{local_name}")
    if node is None:
        node = child_by_local_name(root, local_name)
    return node


def _first_dc(metadata: Optional[LXML_ET._Element], local_name: str) -> Optional[str]:
    if metadata is None:
        return None
    for node in metadata:
        if not isinstance(node.tag, str):
            continue
        if node.tag != f"{{{DC_NS}}}{local_name}" and node.tag != local_name:
            continue
        text = "".join(node.itertext()).strip()
        if text:
            return text
    return None


def _parse_manifest(manifest: LXML_ET._Element, doc_path: str) -> tuple[dict[str, Optional[str]], dict[str, ManifestItem]]:
    base_dir = parent_dir(doc_path)
    by_path: dict[str, Optional[str]] = {}
    by_id: dict[str, ManifestItem] = {}
    for node in iter_children_by_local_name(manifest, "item"):
        item_id = str(node.attrib.get("id") or "").strip()
        href = str(node.attrib.get("href") or "").strip()
        if not item_id or not href:
            logger.debug("skipping manifest item without id or href: id=%r href=%r", item_id, href)
            continue
        media_type = str(node.attrib.get("media-type") or "").strip() or None
        item = ManifestItem(
            item_id=item_id,
            href=href,
            media_type=media_type,
            properties={part for part in str(node.attrib.get("properties") or "").split() if part},
            path=normalize(base_dir, href),
        )
        if item_id in by_id:
            logger.debug("duplicate manifest id %r, keeping %s", item_id, item.path)
        by_id[item_id] = item
        by_path[item.path] = media_type
    return by_path, by_id


def _parse_spine(spine: LXML_ET._Element, items_by_id: dict[str, ManifestItem]) -> list[str]:
    paths: list[str] = []
    seen: set[str] = set()
    for itemref in iter_children_by_local_name(spine, "itemref"):
        idref = str(itemref.attrib.get("idref") or "").strip()
        item = items_by_id.get(idref)
        if item is None:
            raise DanglingSpineReference(f"Spine itemref {idref!r} has no manifest item")
        if item.path in seen:
            logger.warning("spine lists %s more than once, keeping the first position", item.path)
            continue
        seen.add(item.path)
        paths.append(item.path)
    return paths


def _cover_path(metadata: Optional[LXML_ET._Element], items_by_id: dict[str, ManifestItem]) -> Optional[str]:
    for item in items_by_id.values():
        if "cover-image" in item.properties:
            return item.path
    if metadata is None:
        return None
    for node in iter_children_by_local_name(metadata, "meta"):
        if str(attr_by_local_name(node, "name") or "").strip() != "cover":
            continue
        cover_ref = str(attr_by_local_name(node, "content") or "").strip()
        if cover_ref in items_by_id:
            return items_by_id[cover_ref].path
    return None


def parse_package(raw: bytes, doc_path: str) -> PackageDocument:
    """Parse an OPF package document located at canonical path ``doc_path``."""

    root = xml_root_from_bytes(raw, doc_path)
    if tag_local_name(root.tag) != "package":
        raise MalformedXml(f"{doc_path}: root element is <{tag_local_name(root.tag)}>, expected <package>")

    metadata = _section(root, "metadata")
    title = _first_dc(metadata, "title")
    if not title:
        raise MissingTitle(f"{doc_path}: no dc:title in package metadata")

    manifest = _section(root, "manifest")
    if manifest is None:
        raise MalformedXml(f"{doc_path}: package has no <manifest>")
    spine = _section(root, "spine")
    if spine is None:
        raise MalformedXml(f"{doc_path}: package has no <spine>")

    by_path, by_id = _parse_manifest(manifest, doc_path)
    spine_paths = _parse_spine(spine, by_id)
    version = EpubVersion.from_attribute(root.attrib.get("version"))

    legacy_toc_id = None
    if version is EpubVersion.EPUB2:
        legacy_toc_id = str(spine.attrib.get("toc") or "").strip() or None

    return PackageDocument(
        path=doc_path,
        title=title,
        version=version,
        manifest=by_path,
        items_by_id=by_id,
        spine=spine_paths,
        legacy_toc_id=legacy_toc_id,
        language=_first_dc(metadata, "language"),
        cover_path=_cover_path(metadata, by_id),
    )
