from __future__ import annotations

from urllib.parse import SplitResult, unquote, urlsplit, urlunsplit

from .errors import InvalidPath

ROOT = "/"

# Anything else before a colon ("c1:intro.xhtml") is part of a file name.
REMOTE_SCHEMES = frozenset({"http", "https", "ftp", "file", "data", "mailto", "tel", "urn"})


def _clean(reference: str) -> str:
    return (reference or "").strip().replace("\\", "/")


def _split(reference: str) -> SplitResult:
    try:
        return urlsplit(_clean(reference))
    except ValueError as exc:
        raise InvalidPath(f"Unparseable reference: {reference!r}") from exc


def _is_remote(split: SplitResult) -> bool:
    return bool(split.netloc) or split.scheme in REMOTE_SCHEMES


def _local_path(reference: str) -> str:
    return _clean(reference).split("#", 1)[0].split("?", 1)[0]


def _resolve_segments(path: str) -> str:
    resolved: list[str] = []
    for segment in path.split("/"):
        if segment in {"", "."}:
            continue
        if segment == "..":
            if not resolved:
                raise InvalidPath(f"Path escapes the container root: {path!r}")
            resolved.pop()
            continue
        resolved.append(segment)
    return ROOT + "/".join(resolved)


def normalize(base_dir: str, reference: str) -> str:
    """Resolve an href/src value against ``base_dir`` into a canonical path.

    Canonical paths are percent-decoded, slash separated and anchored at the
    container root (``/OEBPS/Text/ch1.xhtml``), so a canonical path resolves
    to itself against any base. Fragments are dropped. Remote URLs are not
    container paths and come back as given, minus the fragment.
    """

    split = _split(reference)
    if _is_remote(split):
        return urlunsplit((split.scheme, split.netloc, split.path, split.query, ""))

    path = unquote(_local_path(reference))
    if not path.startswith("/"):
        path = f"{base_dir or ''}/{path}"
    return _resolve_segments(path)


def parent_dir(path: str) -> str:
    head, _, _ = (path or "").rpartition("/")
    return head or ROOT


def resolve_href(doc_path: str, reference: str) -> str:
    split = _split(reference)
    # "#frag" 这类引用指向文档自身。
    if not (_is_remote(split) or _local_path(reference)):
        return normalize(ROOT, doc_path)
    return normalize(parent_dir(doc_path), reference)


def canonical_member(name: str) -> str:
    try:
        canonical = _resolve_segments((name or "").replace("\\", "/"))
    except InvalidPath:
        return ""
    return "" if canonical == ROOT else canonical
