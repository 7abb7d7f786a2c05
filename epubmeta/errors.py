from __future__ import annotations


class EpubError(Exception):
    pass


class ContainerError(EpubError):
    pass


class MissingContainerEntry(EpubError):
    pass


class MalformedContainer(EpubError):
    pass


class MalformedXml(EpubError):
    pass


class InvalidPath(MalformedXml):
    pass


class MissingTitle(EpubError):
    pass


class DanglingSpineReference(EpubError):
    pass


class UnsupportedVersion(EpubError):
    pass


class MissingTocReference(EpubError):
    pass


class ResourceNotFound(EpubError):
    pass
