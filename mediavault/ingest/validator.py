from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Optional, Tuple

from mediavault.db.models import MediaKind

from .resources import ExternalResourceRef

__all__ = [
    "ACCEPTED_PREFIXES",
    "DEFAULT_EXTENSION",
    "classify",
    "is_acceptable",
    "is_size_acceptable",
    "kind_from_mime",
    "kind_from_path",
    "extension_for",
    "extension_from_name",
    "extension_from_mime",
    "is_previewable",
    "is_video_path",
]

ACCEPTED_PREFIXES = ("image/", "video/", "audio/")
DEFAULT_EXTENSION = "dat"

# Substring match against the MIME type, first hit wins.
_MIME_EXTENSIONS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("jpeg", "jpg"), "jpg"),
    (("png",), "png"),
    (("gif",), "gif"),
    (("webp",), "webp"),
    (("mp4",), "mp4"),
    (("quicktime",), "mov"),
    (("3gpp",), "3gp"),
    (("webm",), "webm"),
    (("mpeg",), "mp3"),
    (("aac",), "aac"),
    (("wav",), "wav"),
    (("ogg",), "ogg"),
)

_VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "avi", "mkv", "3gp", "webm"})
_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif", "heic", "bmp"})
_AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "aac", "ogg", "flac", "m4a"})


def is_acceptable(declared_kind: Optional[str]) -> bool:
    """Return True when the declared MIME type is image, video or audio."""
    if not declared_kind:
        return False
    lowered = declared_kind.strip().lower()
    return lowered.startswith(ACCEPTED_PREFIXES)


def is_size_acceptable(declared_size: Optional[int], limit_bytes: int) -> bool:
    """Unknown sizes pass; the copy itself still has to produce bytes."""
    if declared_size is None:
        return True
    return declared_size <= limit_bytes


def kind_from_mime(mime_type: Optional[str]) -> MediaKind:
    if not mime_type:
        return MediaKind.file
    lowered = mime_type.lower()
    if lowered.startswith("image/"):
        return MediaKind.image
    if lowered.startswith("video/"):
        return MediaKind.video
    if lowered.startswith("audio/"):
        return MediaKind.audio
    return MediaKind.file


def kind_from_path(path: Path | str) -> MediaKind:
    """Resolve the kind of a stored file from its name, never from the source's claim."""
    extension = extension_from_name(str(path))
    if extension in _VIDEO_EXTENSIONS:
        return MediaKind.video
    if extension in _IMAGE_EXTENSIONS:
        return MediaKind.image
    if extension in _AUDIO_EXTENSIONS:
        return MediaKind.audio
    return kind_from_mime(mimetypes.guess_type(str(path))[0])


def classify(ref: ExternalResourceRef) -> Tuple[MediaKind, Optional[int]]:
    """Return the declared kind and size of ``ref`` without opening it."""
    meta = ref.metadata()
    return kind_from_mime(meta.declared_kind), meta.declared_size


def extension_from_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot == -1 or dot == len(base) - 1:
        return None
    extension = base[dot + 1 :].lower()
    if not extension.isalnum():
        return None
    return extension


def extension_from_mime(mime_type: Optional[str]) -> Optional[str]:
    if not mime_type:
        return None
    lowered = mime_type.lower()
    for needles, extension in _MIME_EXTENSIONS:
        if any(needle in lowered for needle in needles):
            return extension
    return None


def extension_for(display_name: Optional[str], mime_type: Optional[str]) -> str:
    return extension_from_name(display_name) or extension_from_mime(mime_type) or DEFAULT_EXTENSION


def is_previewable(kind: MediaKind) -> bool:
    return kind in (MediaKind.image, MediaKind.video)


def is_video_path(path: Path | str) -> bool:
    return extension_from_name(str(path)) in _VIDEO_EXTENSIONS
