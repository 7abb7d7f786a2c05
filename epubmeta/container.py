from __future__ import annotations

import io
import os
import zipfile
import zlib
from typing import BinaryIO, Optional, Union

from .errors import ContainerError, MalformedContainer, MissingContainerEntry
from .paths import canonical_member
from .xmlutil import tag_local_name, xml_root_from_bytes

CONTAINER_PATH = "/META-INF/container.xml"

Source = Union[str, "os.PathLike[str]", bytes, bytearray, BinaryIO]


def open_archive(source: Source) -> zipfile.ZipFile:
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(bytes(source))
    try:
        return zipfile.ZipFile(source, "r")
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError, ValueError) as exc:
        raise ContainerError(f"Cannot open EPUB container: {exc}") from exc


def member_index(archive: zipfile.ZipFile) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for info in archive.infolist():
        if info.is_dir():
            continue
        canonical = canonical_member(info.filename)
        if canonical and canonical not in mapping:
            mapping[canonical] = info.filename
    return mapping


def read_member(archive: zipfile.ZipFile, index: dict[str, str], path: str) -> Optional[bytes]:
    actual = index.get(path)
    if actual is None:
        return None
    try:
        return archive.read(actual)
    except (zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError, ValueError) as exc:
        raise ContainerError(f"Cannot read {actual!r} from EPUB container: {exc}") from exc


def locate_package_document(archive: zipfile.ZipFile, index: Optional[dict[str, str]] = None) -> str:
    """Return the canonical path of the first package document listed in container.xml."""

    if index is None:
        index = member_index(archive)
    container_raw = read_member(archive, index, CONTAINER_PATH)
    if container_raw is None:
        raise MissingContainerEntry("Missing META-INF/container.xml")
    root = xml_root_from_bytes(container_raw, "META-INF/container.xml")

    for node in root.iter():
        if tag_local_name(node.tag) != "rootfile":
            continue
        full_path = canonical_member((node.attrib.get("full-path") or "").strip())
        if full_path:
            return full_path
    raise MalformedContainer("Missing OPF path in container.xml")
