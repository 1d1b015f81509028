from __future__ import annotations

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Optional
from urllib.parse import unquote, urlparse

__all__ = [
    "ResourceMetadata",
    "ExternalResourceRef",
    "LocalFileRef",
    "StreamRef",
    "resolve_source_uri",
]


@dataclass(slots=True, frozen=True)
class ResourceMetadata:
    """What the resolver claims about a resource. Any field may be missing."""

    declared_kind: Optional[str]
    declared_size: Optional[int]
    display_name: Optional[str]


class ExternalResourceRef(ABC):
    """Opaque handle to a byte stream the engine does not own.

    The engine only reads through :meth:`metadata` and :meth:`open`; it never
    mutates the referenced resource.
    """

    @property
    @abstractmethod
    def identity(self) -> str: ...

    @abstractmethod
    def metadata(self) -> ResourceMetadata: ...

    @abstractmethod
    def open(self) -> BinaryIO: ...

    @property
    def label(self) -> str:
        name = self.metadata().display_name
        if name:
            return name
        return self.identity.rstrip("/").rsplit("/", 1)[-1] or self.identity

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity!r})"


class LocalFileRef(ExternalResourceRef):
    """A file on the local filesystem, e.g. one chosen through a picker."""

    def __init__(self, path: Path, *, declared_kind: Optional[str] = None):
        self.path = Path(path)
        self._declared_kind = declared_kind

    @property
    def identity(self) -> str:
        return self.path.absolute().as_uri()

    def metadata(self) -> ResourceMetadata:
        kind = self._declared_kind or mimetypes.guess_type(self.path.name)[0]
        try:
            size: Optional[int] = self.path.stat().st_size
        except OSError:
            size = None
        return ResourceMetadata(declared_kind=kind, declared_size=size, display_name=self.path.name)

    def open(self) -> BinaryIO:
        return self.path.open("rb")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LocalFileRef) and other.identity == self.identity

    def __hash__(self) -> int:
        return hash(self.identity)


class StreamRef(ExternalResourceRef):
    """A resource whose bytes come from an arbitrary opener callable."""

    def __init__(
        self,
        identity: str,
        opener: Callable[[], BinaryIO],
        *,
        declared_kind: Optional[str] = None,
        declared_size: Optional[int] = None,
        display_name: Optional[str] = None,
    ):
        self._identity = identity
        self._opener = opener
        self._metadata = ResourceMetadata(
            declared_kind=declared_kind,
            declared_size=declared_size,
            display_name=display_name,
        )

    @property
    def identity(self) -> str:
        return self._identity

    def metadata(self) -> ResourceMetadata:
        return self._metadata

    def open(self) -> BinaryIO:
        return self._opener()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StreamRef) and other.identity == self.identity

    def __hash__(self) -> int:
        return hash(self._identity)


def resolve_source_uri(source_uri: str, allowed_schemes: Iterable[str] = ("file",)) -> LocalFileRef:
    """Turn a ``file://`` URI (or bare path) into a reference.

    Raises:
        ValueError: If the scheme is not allowed or cannot be read locally.
    """
    parsed = urlparse(source_uri)
    scheme = parsed.scheme or "file"
    if scheme not in set(allowed_schemes):
        raise ValueError(f"unsupported_uri_scheme:{scheme}")
    if scheme != "file":
        raise ValueError(f"unsupported_uri_scheme:{scheme}")
    if parsed.scheme == "file":
        return LocalFileRef(Path(unquote(parsed.path)))
    return LocalFileRef(Path(source_uri))
