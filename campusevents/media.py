"""Image and video uploads to object storage."""

from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path, PurePosixPath

from .config import settings
from .errors import StoreFailure, ValidationFailed

logger = logging.getLogger("uvicorn.error")

_NAME_ALPHABET = string.ascii_lowercase + string.digits

WRONG_TYPE_MESSAGES = {
    "image": "Please select an image file",
    "video": "Please select a video file",
}


class MediaValidationError(ValidationFailed):
    """The file was rejected before reaching storage."""


class StorageError(StoreFailure):
    """Object storage failed to store the file."""


class LocalObjectStorage:
    """Filesystem-backed buckets served under ``public_prefix``."""

    def __init__(self, root: Path, *, public_prefix: str = "/storage") -> None:
        self.root = Path(root)
        self.public_prefix = public_prefix.rstrip("/")

    def _target(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid storage path: {path}")
        if not bucket or "/" in bucket or bucket in {".", ".."}:
            raise StorageError(f"Invalid bucket: {bucket}")
        return self.root / bucket / Path(*relative.parts)

    def upload(self, bucket: str, path: str, data: bytes) -> None:
        target = self._target(bucket, path)
        if target.exists():
            raise StorageError(f"Object already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Failed to write %s/%s", bucket, path, exc_info=True)
            raise StorageError("Failed to store file") from exc

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_prefix}/{bucket}/{path}"


def default_storage() -> LocalObjectStorage:
    return LocalObjectStorage(settings.media_dir)


def _object_name(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    extension = "".join(ch for ch in extension if ch.isalnum()) or "bin"
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_NAME_ALPHABET) for _ in range(11))
    return f"{millis}-{suffix}.{extension}"


def validate_media(
    *, content_type: str | None, size: int, kind: str, max_bytes: int
) -> None:
    if not (content_type or "").lower().startswith(f"{kind}/"):
        raise MediaValidationError(WRONG_TYPE_MESSAGES[kind])
    if size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise MediaValidationError(
            f"{kind.capitalize()} must be smaller than {limit_mb}MB"
        )


def _upload(
    storage: LocalObjectStorage,
    *,
    filename: str,
    content_type: str | None,
    data: bytes,
    kind: str,
    max_bytes: int,
    folder: str,
) -> str:
    validate_media(
        content_type=content_type, size=len(data), kind=kind, max_bytes=max_bytes
    )
    bucket = settings.storage_bucket
    path = f"{folder}/{_object_name(filename)}"
    storage.upload(bucket, path, data)
    url = storage.get_public_url(bucket, path)
    logger.info("Uploaded %s %s (%d bytes)", kind, path, len(data))
    return url


def upload_image(
    storage: LocalObjectStorage,
    *,
    filename: str,
    content_type: str | None,
    data: bytes,
    folder: str = "event-images",
) -> str:
    """Validate and store an image, returning its public URL."""
    return _upload(
        storage,
        filename=filename,
        content_type=content_type,
        data=data,
        kind="image",
        max_bytes=settings.max_image_bytes,
        folder=folder,
    )


def upload_video(
    storage: LocalObjectStorage,
    *,
    filename: str,
    content_type: str | None,
    data: bytes,
    folder: str = "event-videos",
) -> str:
    """Validate and store a video, returning its public URL."""
    return _upload(
        storage,
        filename=filename,
        content_type=content_type,
        data=data,
        kind="video",
        max_bytes=settings.max_video_bytes,
        folder=folder,
    )
