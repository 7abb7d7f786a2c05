from .errors import (
    ContainerError,
    DanglingSpineReference,
    EpubError,
    InvalidPath,
    MalformedContainer,
    MalformedXml,
    MissingContainerEntry,
    MissingTitle,
    MissingTocReference,
    ResourceNotFound,
    UnsupportedVersion,
)
from .models import BookMeta, Toc, TocNode, book_meta_from_dict, book_meta_to_dict, book_meta_to_json
from .parser import Parser, open_book

__all__ = [
    "BookMeta",
    "ContainerError",
    "DanglingSpineReference",
    "EpubError",
    "InvalidPath",
    "MalformedContainer",
    "MalformedXml",
    "MissingContainerEntry",
    "MissingTitle",
    "MissingTocReference",
    "Parser",
    "ResourceNotFound",
    "Toc",
    "TocNode",
    "UnsupportedVersion",
    "book_meta_from_dict",
    "book_meta_to_dict",
    "book_meta_to_json",
    "open_book",
]
