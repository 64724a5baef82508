"""Pydantic schemas for publishing to external media hosts."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class MixpostUploadRequest(BaseModel):
    """Request to publish one finished version to Mixpost."""
    job_id: str
    version_key: str
    workspace_id: str = Field(..., min_length=1, description="Mixpost workspace UUID")


class MixpostUploadResponse(BaseModel):
    """Response after a successful publish."""
    success: bool = True
    media_id: Optional[Any] = None
    workspace_id: str
    filename: str
    message: str
