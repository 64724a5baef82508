"""Mixpost media client.

Publishes a finished version to a Mixpost workspace's media library.
Uploads are attempted once; failures are reported to the caller.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class MixpostError(Exception):
    """Raised when Mixpost rejects or fails an upload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MixpostNotConfiguredError(MixpostError):
    """Raised when no API key or base URL is configured."""

    pass


@dataclass
class MixpostUploadResult:
    """Result of a media upload."""
    media_id: Optional[Any]
    workspace_id: str
    filename: str
    response_data: dict = field(default_factory=dict)


def extract_media_id(data: Any) -> Optional[Any]:
    """Pull the media id from either a flat or a ``data``-wrapped response."""
    if not isinstance(data, dict):
        return None
    if data.get("id") is not None:
        return data["id"]
    nested = data.get("data")
    if isinstance(nested, dict):
        return nested.get("id")
    return None


class MixpostClient:
    """Client for the Mixpost media API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Mixpost installation URL
            api_key: Bearer token
            timeout: Request timeout in seconds
            transport: Optional transport, used to stub the API in tests
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def media_url(self, workspace_id: str) -> str:
        return f"{self.base_url}/api/{workspace_id}/media"

    async def upload_media(
        self,
        workspace_id: str,
        file_path: str,
        filename: Optional[str] = None,
    ) -> MixpostUploadResult:
        """Upload a file to a workspace's media library.

        Raises:
            MixpostNotConfiguredError: If credentials are missing
            MixpostError: If the request fails or Mixpost answers with an error
        """
        if not self.is_configured:
            raise MixpostNotConfiguredError("Mixpost API key not configured")
        if not workspace_id:
            raise MixpostError("Workspace ID is required")

        filename = filename or os.path.basename(file_path)
        url = self.media_url(workspace_id)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

        logger.info("Uploading to Mixpost", extra={"url": url, "media_file": filename})

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                with open(file_path, "rb") as fh:
                    response = await client.post(
                        url,
                        headers=headers,
                        files={"file": (filename, fh, "video/mp4")},
                    )
        except httpx.TimeoutException:
            raise MixpostError("Mixpost upload timed out") from None
        except httpx.HTTPError as e:
            raise MixpostError(f"Mixpost request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "Mixpost API error",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            raise MixpostError(
                f"Mixpost API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        result = MixpostUploadResult(
            media_id=extract_media_id(data),
            workspace_id=workspace_id,
            filename=filename,
            response_data=data if isinstance(data, dict) else {},
        )
        logger.info(
            "Uploaded to Mixpost",
            extra={"workspace_id": workspace_id, "media_id": result.media_id},
        )
        return result
