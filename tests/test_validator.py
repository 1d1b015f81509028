from __future__ import annotations

import pytest

from mediavault.db.models import MediaKind
from mediavault.ingest.validator import (
    classify,
    extension_for,
    is_acceptable,
    is_previewable,
    is_size_acceptable,
    is_video_path,
    kind_from_mime,
    kind_from_path,
)
from tests.conftest import make_ref


@pytest.mark.parametrize(
    "declared, expected",
    [
        ("image/jpeg", True),
        ("image/gif", True),
        ("video/mp4", True),
        ("audio/ogg", True),
        ("IMAGE/PNG", True),
        ("application/pdf", False),
        ("text/plain", False),
        ("", False),
        (None, False),
    ],
)
def test_is_acceptable(declared, expected):
    assert is_acceptable(declared) is expected


def test_size_limit_is_inclusive_and_unknown_passes():
    assert is_size_acceptable(100, 100)
    assert not is_size_acceptable(101, 100)
    assert is_size_acceptable(None, 100)


@pytest.mark.parametrize(
    "mime, kind",
    [
        ("image/gif", MediaKind.image),
        ("image/webp", MediaKind.image),
        ("video/quicktime", MediaKind.video),
        ("audio/aac", MediaKind.audio),
        ("application/zip", MediaKind.file),
        (None, MediaKind.file),
    ],
)
def test_kind_from_mime(mime, kind):
    assert kind_from_mime(mime) is kind


def test_classify_reads_metadata_without_opening():
    def opener():
        raise AssertionError("classify must not open the stream")

    ref = make_ref(b"", name="clip.mov", kind="video/quicktime", size=2048, opener=opener)
    assert classify(ref) == (MediaKind.video, 2048)


@pytest.mark.parametrize(
    "name, mime, expected",
    [
        ("Holiday.JPEG", "image/jpeg", "jpeg"),
        ("clip", "video/quicktime", "mov"),
        ("clip.", "video/3gpp", "3gp"),
        (None, "image/jpeg", "jpg"),
        (None, "audio/mpeg", "mp3"),
        ("noext", "application/octet-stream", "dat"),
        (None, None, "dat"),
        ("weird.j/pg", "image/png", "png"),
    ],
)
def test_extension_for_prefers_name_then_mime(name, mime, expected):
    assert extension_for(name, mime) == expected


def test_kind_from_path_uses_extension():
    assert kind_from_path("media_1_abc.mov") is MediaKind.video
    assert kind_from_path("media_1_abc.jpg") is MediaKind.image
    assert kind_from_path("media_1_abc.mp3") is MediaKind.audio
    assert kind_from_path("media_1_abc.bin") is MediaKind.file


def test_preview_helpers():
    assert is_previewable(MediaKind.image)
    assert is_previewable(MediaKind.video)
    assert not is_previewable(MediaKind.audio)
    assert is_video_path("/tmp/a/b/movie.MKV")
    assert not is_video_path("/tmp/a/b/photo.png")
