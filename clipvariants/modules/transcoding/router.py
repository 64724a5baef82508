"""API Router for the preset catalog."""

from fastapi import APIRouter, Request

from clipvariants.modules.transcoding.presets import PRESETS
from clipvariants.modules.transcoding.schemas import PresetInfo, PresetListResponse

router = APIRouter(prefix="/presets", tags=["presets"])


@router.get("", response_model=PresetListResponse)
async def list_presets(request: Request) -> PresetListResponse:
    """List presets in the order versions are assigned them."""
    max_versions = min(request.app.state.settings.MAX_VERSION_COUNT, len(PRESETS))
    return PresetListResponse(
        presets=[PresetInfo.from_preset(p) for p in PRESETS],
        max_versions=max_versions,
    )
