"""Video module for source upload intake."""

from clipvariants.modules.video.service import (
    InvalidFileError,
    UploadNotFoundError,
    StoredUpload,
    validate_video_file,
    save_upload,
    resolve_upload,
)

__all__ = [
    "InvalidFileError",
    "UploadNotFoundError",
    "StoredUpload",
    "validate_video_file",
    "save_upload",
    "resolve_upload",
]
