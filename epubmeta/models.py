from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class TocNode:
    title: str
    href: Optional[str] = None
    children: Optional[tuple["TocNode", ...]] = None


@dataclass(frozen=True)
class Toc:
    contents: tuple[TocNode, ...] = ()


@dataclass(frozen=True)
class BookMeta:
    title: str
    manifest: Mapping[str, Optional[str]] = field(default_factory=dict)
    spine: tuple[str, ...] = ()
    toc: Toc = field(default_factory=Toc)

    def __post_init__(self) -> None:
        # 对外只读：拷贝一份再包一层只读视图。
        object.__setattr__(self, "manifest", MappingProxyType(dict(self.manifest)))
        object.__setattr__(self, "spine", tuple(self.spine))


def toc_node_to_dict(node: TocNode) -> dict:
    return {
        "title": node.title,
        "href": node.href,
        "children": None if node.children is None else [toc_node_to_dict(child) for child in node.children],
    }


def toc_node_from_dict(data: dict) -> TocNode:
    children = data.get("children")
    return TocNode(
        title=data.get("title", ""),
        href=data.get("href"),
        children=None if children is None else tuple(toc_node_from_dict(child) for child in children),
    )


def book_meta_to_dict(meta: BookMeta) -> dict:
    return {
        "title": meta.title,
        "manifest": dict(meta.manifest),
        "spine": list(meta.spine),
        "toc": {"contents": [toc_node_to_dict(node) for node in meta.toc.contents]},
    }


def book_meta_from_dict(data: dict) -> BookMeta:
    toc = data.get("toc") or {}
    return BookMeta(
        title=data.get("title", ""),
        manifest=dict(data.get("manifest") or {}),
        spine=tuple(data.get("spine") or ()),
        toc=Toc(contents=tuple(toc_node_from_dict(node) for node in toc.get("contents", []))),
    )


def book_meta_to_json(meta: BookMeta, indent: Optional[int] = None) -> str:
    return json.dumps(book_meta_to_dict(meta), ensure_ascii=False, indent=indent)
