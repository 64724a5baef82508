"""API Router for job submission, status and downloads."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse, RedirectResponse

from clipvariants.core.config import Settings
from clipvariants.modules.job.exceptions import (
    JobNotFoundError,
    VersionNotFoundError,
    VersionNotReadyError,
)
from clipvariants.modules.job.schemas import (
    JobCreateRequest,
    JobCreateResponse,
    JobStatusResponse,
)
from clipvariants.modules.job.service import JobCoordinator
from clipvariants.modules.job.storage import OutputStore
from clipvariants.modules.transcoding.exceptions import IntakeError
from clipvariants.modules.video.service import UploadNotFoundError, resolve_upload

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_coordinator(request: Request) -> JobCoordinator:
    """Dependency to get the app's JobCoordinator."""
    return request.app.state.coordinator


def get_output_store(request: Request) -> OutputStore:
    """Dependency to get the app's OutputStore."""
    return request.app.state.output_store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# ==================== Submission ====================

@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(
    request: JobCreateRequest,
    coordinator: JobCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_app_settings),
) -> JobCreateResponse:
    """Start producing versions of an uploaded video.

    Returns immediately; poll the job status for progress.
    """
    try:
        upload = resolve_upload(settings.UPLOAD_DIR, request.video_id)
        job_id = await coordinator.submit(
            upload.path,
            version_count=request.version_count,
            preset_keys=request.preset_keys,
            original_filename=upload.original_name,
        )
    except UploadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IntakeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    job = coordinator.get_status(job_id)
    return JobCreateResponse(
        job_id=job_id,
        status=job.status,
        versions=list(job.versions),
        message=f"Processing started for {job.version_count} versions",
    )


# ==================== Status ====================

@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job(
    job_id: str,
    coordinator: JobCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_app_settings),
) -> JobStatusResponse:
    """Get job status with per-version progress and outputs."""
    try:
        job = coordinator.get_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return JobStatusResponse.from_job(job, settings.API_V1_PREFIX)


# ==================== Downloads ====================

@router.get("/{job_id}/versions/{key}/download")
async def download_version(
    job_id: str,
    key: str,
    output_store: OutputStore = Depends(get_output_store),
):
    """Download one finished version."""
    try:
        target = output_store.download(job_id, key)
    except (JobNotFoundError, VersionNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VersionNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return FileResponse(target.path, media_type=target.media_type, filename=target.filename)


@router.get("/{job_id}/download")
async def download_all(
    job_id: str,
    output_store: OutputStore = Depends(get_output_store),
    settings: Settings = Depends(get_app_settings),
):
    """Download every finished version.

    Single-version jobs redirect to that version's download.
    """
    try:
        target = await output_store.download_all(job_id)
    except (JobNotFoundError, VersionNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VersionNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if target.version_key is not None:
        return RedirectResponse(
            url=f"{settings.API_V1_PREFIX}/jobs/{job_id}/versions/{target.version_key}/download",
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )

    return FileResponse(target.path, media_type=target.media_type, filename=target.filename)
