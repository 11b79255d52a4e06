from __future__ import annotations

import re

import pytest

from campusevents.media import (
    LocalObjectStorage,
    MediaValidationError,
    StorageError,
    upload_image,
    upload_video,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture()
def storage(tmp_path):
    return LocalObjectStorage(tmp_path)


def test_upload_image_stores_file_and_returns_public_url(storage, tmp_path):
    url = upload_image(
        storage, filename="Poster.PNG", content_type="image/png", data=PNG_BYTES
    )

    match = re.fullmatch(
        r"/storage/event-images/event-images/(\d+)-([a-z0-9]{11})\.png", url
    )
    assert match is not None
    stored = tmp_path / "event-images" / "event-images" / f"{match.group(1)}-{match.group(2)}.png"
    assert stored.read_bytes() == PNG_BYTES


def test_wrong_type_is_rejected_before_storage(storage, tmp_path):
    with pytest.raises(MediaValidationError) as excinfo:
        upload_image(
            storage, filename="notes.txt", content_type="text/plain", data=b"hello"
        )

    assert excinfo.value.message == "Please select an image file"
    assert list(tmp_path.iterdir()) == []


def test_oversized_image_is_rejected(storage, tmp_path):
    too_big = b"\x00" * (5 * 1024 * 1024 + 1)

    with pytest.raises(MediaValidationError) as excinfo:
        upload_image(storage, filename="huge.jpg", content_type="image/jpeg", data=too_big)

    assert excinfo.value.message == "Image must be smaller than 5MB"
    assert list(tmp_path.iterdir()) == []


def test_upload_video_uses_video_folder(storage):
    url = upload_video(
        storage, filename="clip.mp4", content_type="video/mp4", data=b"\x00" * 64
    )
    assert url.startswith("/storage/event-images/event-videos/")
    assert url.endswith(".mp4")


def test_video_rejects_images(storage):
    with pytest.raises(MediaValidationError) as excinfo:
        upload_video(storage, filename="a.png", content_type="image/png", data=PNG_BYTES)
    assert excinfo.value.message == "Please select a video file"


def test_storage_refuses_path_traversal_and_overwrites(storage):
    with pytest.raises(StorageError):
        storage.upload("event-images", "../escape.png", PNG_BYTES)

    storage.upload("event-images", "avatars/me.png", PNG_BYTES)
    with pytest.raises(StorageError):
        storage.upload("event-images", "avatars/me.png", PNG_BYTES)


def test_storage_write_failure_raises_storage_error(storage, monkeypatch):
    def failing_write(self, data):
        raise OSError("disk full")

    monkeypatch.setattr("pathlib.Path.write_bytes", failing_write)

    with pytest.raises(StorageError) as excinfo:
        upload_image(storage, filename="a.png", content_type="image/png", data=PNG_BYTES)
    assert excinfo.value.status_code == 503
