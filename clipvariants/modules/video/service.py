"""Video intake.

Uploads are stored as ``<video_id>__<sanitized original name>`` inside the
upload directory so the original name can be recovered from the id alone.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Optional

from clipvariants.modules.transcoding.exceptions import IntakeError
from clipvariants.modules.video.schemas import (
    ALLOWED_VIDEO_EXTENSIONS,
    ALLOWED_VIDEO_MIME_PREFIX,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
NAME_SEPARATOR = "__"

_VIDEO_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class InvalidFileError(IntakeError):
    """Raised when an upload is missing, oversized or not a video."""

    pass


class UploadNotFoundError(InvalidFileError):
    """Raised when a video id does not name a stored upload."""

    pass


@dataclass(frozen=True)
class StoredUpload:
    """An upload saved to disk."""
    video_id: str
    path: str
    original_name: str
    size_bytes: int

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)


def validate_video_file(filename: Optional[str], content_type: Optional[str]) -> None:
    """Validate an upload by name and declared content type.

    A file is accepted when its content type is ``video/*`` or, lacking a
    useful content type, when its extension is a known video extension.

    Raises:
        InvalidFileError: If file validation fails
    """
    if not filename:
        raise InvalidFileError("No video file uploaded")

    if content_type and content_type.startswith(ALLOWED_VIDEO_MIME_PREFIX):
        return

    ext = os.path.splitext(filename)[1].lower()
    if content_type in (None, "", "application/octet-stream") and ext in ALLOWED_VIDEO_EXTENSIONS:
        return

    raise InvalidFileError(
        f"Only video files are allowed (got content type '{content_type or 'unknown'}')"
    )


def sanitize_filename(filename: str) -> str:
    name = _UNSAFE_CHARS_RE.sub("_", os.path.basename(filename)).strip("._")
    return name or "video"


def save_upload(
    stream: BinaryIO,
    filename: str,
    upload_dir: str,
    max_size: int,
) -> StoredUpload:
    """Copy an upload stream to the upload directory.

    The file is written in chunks and abandoned as soon as it exceeds
    ``max_size``.

    Raises:
        InvalidFileError: If the upload is empty or too large
    """
    os.makedirs(upload_dir, exist_ok=True)

    video_id = uuid.uuid4().hex
    path = os.path.join(upload_dir, f"{video_id}{NAME_SEPARATOR}{sanitize_filename(filename)}")

    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_size:
                    raise InvalidFileError(
                        f"File exceeds maximum allowed size of {max_size // (1024 * 1024)} MB"
                    )
                out.write(chunk)
        if size == 0:
            raise InvalidFileError("File size must be greater than 0")
    except BaseException:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        raise

    logger.info("Upload stored", extra={"video_id": video_id, "size_bytes": size})
    return StoredUpload(video_id=video_id, path=path, original_name=filename, size_bytes=size)


def resolve_upload(upload_dir: str, video_id: str) -> StoredUpload:
    """Find a stored upload by id.

    Raises:
        UploadNotFoundError: If the id is malformed or names no stored file
    """
    if not _VIDEO_ID_RE.match(video_id or ""):
        raise UploadNotFoundError(f"Video {video_id} not found")

    prefix = f"{video_id}{NAME_SEPARATOR}"
    try:
        names = os.listdir(upload_dir)
    except FileNotFoundError:
        names = []

    for name in names:
        if name.startswith(prefix):
            path = os.path.join(upload_dir, name)
            if os.path.isfile(path):
                return StoredUpload(
                    video_id=video_id,
                    path=path,
                    original_name=name[len(prefix):],
                    size_bytes=os.path.getsize(path),
                )

    raise UploadNotFoundError(f"Video {video_id} not found")
