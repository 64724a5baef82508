"""API Router for video uploads."""

import asyncio

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status

from clipvariants.modules.video.schemas import UploadResponse
from clipvariants.modules.video.service import (
    InvalidFileError,
    save_upload,
    validate_video_file,
)

router = APIRouter(prefix="/videos", tags=["videos"])


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    request: Request,
    file: UploadFile = File(...),
) -> UploadResponse:
    """Upload a source video.

    The returned ``video_id`` is what a job submission refers to.
    """
    settings = request.app.state.settings

    try:
        validate_video_file(file.filename, file.content_type)
        upload = await asyncio.to_thread(
            save_upload,
            file.file,
            file.filename,
            settings.UPLOAD_DIR,
            settings.max_upload_size_bytes,
        )
    except InvalidFileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    finally:
        await file.close()

    return UploadResponse(
        video_id=upload.video_id,
        filename=upload.filename,
        original_name=upload.original_name,
        size_bytes=upload.size_bytes,
        size=f"{upload.size_bytes / (1024 * 1024):.2f} MB",
        message="Video uploaded successfully",
    )
