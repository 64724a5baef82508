"""Pydantic schemas for job submission, status and presets."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from clipvariants.modules.job.models import Job, JobStatus, VersionState, VersionStatus


# Job Creation
class JobCreateRequest(BaseModel):
    """Request to process an uploaded video into several versions."""
    video_id: str = Field(..., description="Id returned by the upload endpoint")
    version_count: Optional[int] = Field(None, description="Number of versions to produce")
    preset_keys: Optional[list[str]] = Field(None, description="Explicit presets to run, in order")


class JobCreateResponse(BaseModel):
    """Response after job submission."""
    success: bool = True
    job_id: str
    status: JobStatus
    versions: list[str]
    message: str


# Job Status
class OutputInfo(BaseModel):
    """A finished version file."""
    filename: str
    size_bytes: int
    size: str
    similarity: int
    download_url: str


class VersionInfo(BaseModel):
    """Status of one version."""
    key: str
    preset_name: str
    status: VersionStatus
    progress: int
    output: Optional[OutputInfo] = None
    error: Optional[str] = None


class JobStatusResponse(BaseModel):
    """Aggregate status of a job."""
    job_id: str
    status: JobStatus
    progress: float = Field(..., description="Mean progress of all versions, 0-100")
    version_count: int
    original_filename: str
    versions: list[VersionInfo]
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    total_time: Optional[float] = Field(None, description="Seconds from submission to completion")
    download_all_url: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job, base_path: str) -> "JobStatusResponse":
        """Build a status response, with download links rooted at ``base_path``."""
        job_path = f"{base_path}/jobs/{job.id}"
        return cls(
            job_id=job.id,
            status=job.status,
            progress=round(job.progress, 2),
            version_count=job.version_count,
            original_filename=job.original_filename,
            versions=[_version_info(v, job_path) for v in job.versions.values()],
            error=job.error,
            created_at=job.created_at,
            completed_at=job.completed_at,
            total_time=job.total_time,
            download_all_url=f"{job_path}/download" if job.completed_versions() else None,
        )


def _version_info(version: VersionState, job_path: str) -> VersionInfo:
    output = None
    if version.output is not None:
        output = OutputInfo(
            filename=version.output.filename,
            size_bytes=version.output.size_bytes,
            size=version.output.size_mb,
            similarity=version.output.similarity,
            download_url=f"{job_path}/versions/{version.key}/download",
        )
    return VersionInfo(
        key=version.key,
        preset_name=version.preset_name,
        status=version.status,
        progress=version.progress,
        output=output,
        error=version.error,
    )
