"""API Router for publishing versions to Mixpost."""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from clipvariants.modules.integration.mixpost import (
    MixpostClient,
    MixpostError,
    MixpostNotConfiguredError,
)
from clipvariants.modules.integration.schemas import (
    MixpostUploadRequest,
    MixpostUploadResponse,
)
from clipvariants.modules.job.exceptions import (
    JobNotFoundError,
    VersionNotFoundError,
    VersionNotReadyError,
)
from clipvariants.modules.job.router import get_output_store
from clipvariants.modules.job.storage import OutputStore

router = APIRouter(prefix="/integrations", tags=["integrations"])


def get_mixpost_client(request: Request) -> MixpostClient:
    """Dependency to get the app's MixpostClient."""
    return request.app.state.mixpost


@router.post("/mixpost/upload", response_model=MixpostUploadResponse)
async def upload_to_mixpost(
    request: MixpostUploadRequest,
    client: MixpostClient = Depends(get_mixpost_client),
    output_store: OutputStore = Depends(get_output_store),
) -> MixpostUploadResponse:
    """Upload a finished version to a Mixpost workspace's media library."""
    if not client.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mixpost API key not configured",
        )

    try:
        target = output_store.download(request.job_id, request.version_key)
    except (JobNotFoundError, VersionNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VersionNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    try:
        result = await client.upload_media(request.workspace_id, target.path, target.filename)
    except MixpostNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except MixpostError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return MixpostUploadResponse(
        media_id=result.media_id,
        workspace_id=result.workspace_id,
        filename=result.filename,
        message="Video uploaded to Mixpost workspace",
    )
