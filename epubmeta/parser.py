from __future__ import annotations

import logging
import zipfile
from typing import Optional

from . import env
from .container import Source, locate_package_document, member_index, open_archive, read_member
from .errors import ContainerError, InvalidPath, MalformedContainer, ResourceNotFound
from .models import BookMeta
from .package import PackageDocument, parse_package
from .paths import ROOT, normalize
from .toc import resolve_toc

logger = logging.getLogger("epubmeta.parser")


class Parser:
    """One open EPUB container.

    ``meta()`` resolves title, manifest, spine and table of contents once and
    caches the result; ``resource()`` reads any entry by canonical path and
    works whether or not ``meta()`` has succeeded. Not thread-safe: use one
    instance per thread.
    """

    def __init__(self, archive: zipfile.ZipFile, *, max_toc_depth: Optional[int] = None) -> None:
        self._archive: Optional[zipfile.ZipFile] = archive
        self._index = member_index(archive)
        self._max_toc_depth = max_toc_depth
        self._meta: Optional[BookMeta] = None
        self._package: Optional[PackageDocument] = None

    @classmethod
    def open(cls, source: Source, *, max_toc_depth: Optional[int] = None) -> "Parser":
        return cls(open_archive(source), max_toc_depth=max_toc_depth)

    def __enter__(self) -> "Parser":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._archive is not None:
            self._archive.close()
            self._archive = None

    def _require_archive(self) -> zipfile.ZipFile:
        if self._archive is None:
            raise ContainerError("EPUB container is closed")
        return self._archive

    def _resolve(self) -> tuple[PackageDocument, BookMeta]:
        archive = self._require_archive()
        package_path = locate_package_document(archive, self._index)
        logger.debug("package document at %s", package_path)
        raw = read_member(archive, self._index, package_path)
        if raw is None:
            raise MalformedContainer(f"container.xml points at {package_path}, which is not in the container")

        package = parse_package(raw, package_path)
        max_depth = self._max_toc_depth if self._max_toc_depth is not None else env.max_toc_depth()
        toc = resolve_toc(package, archive, self._index, max_depth)
        logger.debug(
            "resolved %s (EPUB %s): %d manifest items, %d spine entries, %d top-level toc entries",
            package.title,
            package.version.value,
            len(package.manifest),
            len(package.spine),
            len(toc.contents),
        )
        return package, BookMeta(
            title=package.title,
            manifest=package.manifest,
            spine=tuple(package.spine),
            toc=toc,
        )

    def meta(self) -> BookMeta:
        if self._meta is None:
            package, meta = self._resolve()
            self._package = package
            self._meta = meta
        return self._meta

    def resource(self, path: str) -> bytes:
        archive = self._require_archive()
        candidates = [path]
        try:
            candidates.append(normalize(ROOT, path))
        except InvalidPath as exc:
            raise ResourceNotFound(f"Not a container path: {path!r}") from exc
        for candidate in candidates:
            payload = read_member(archive, self._index, candidate)
            if payload is not None:
                return payload
        raise ResourceNotFound(path)

    def language(self) -> Optional[str]:
        self.meta()
        return self._package.language if self._package is not None else None

    def cover(self) -> Optional[tuple[bytes, str]]:
        self.meta()
        cover_path = self._package.cover_path if self._package is not None else None
        if not cover_path:
            return None
        payload = read_member(self._require_archive(), self._index, cover_path)
        if payload is None:
            logger.warning("cover %s is declared in the manifest but missing from the container", cover_path)
            return None
        return payload, cover_path


def open_book(source: Source, *, max_toc_depth: Optional[int] = None) -> Parser:
    return Parser.open(source, max_toc_depth=max_toc_depth)
