"""Pydantic schemas and limits for video intake."""

from pydantic import BaseModel


ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm", ".flv", ".wmv", ".m4v"}
ALLOWED_VIDEO_MIME_PREFIX = "video/"


class UploadResponse(BaseModel):
    """Response after a successful upload."""
    success: bool = True
    video_id: str
    filename: str
    original_name: str
    size_bytes: int
    size: str
    message: str
