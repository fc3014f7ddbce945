# studygram/services/blob_storage.py
"""
Vercel Blob storage client (server-side uploads).

Uses httpx.AsyncClient against the Blob REST API: one authenticated PUT per
file, returning the public URL of the stored object.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from studygram.config.settings import Settings

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"


class BlobStorageError(RuntimeError):
    pass


@dataclass
class StoredBlob:
    url: str
    pathname: str
    content_type: Optional[str] = None
    download_url: Optional[str] = None


class BlobStorageClient:

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ):
        self.token = settings.blob_read_write_token
        self.base_url = settings.blob_api_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.token)

    async def put(
        self,
        pathname: str,
        content: bytes,
        content_type: Optional[str] = None,
        access: str = "public",
    ) -> StoredBlob:
        """Upload `content` under `pathname`; raises BlobStorageError on failure."""
        if not self.token:
            raise BlobStorageError("BLOB_READ_WRITE_TOKEN is not configured")

        headers: Dict[str, str] = {
            "authorization": f"Bearer {self.token}",
            "x-api-version": BLOB_API_VERSION,
            "x-vercel-blob-access": access,
        }
        if content_type:
            headers["x-content-type"] = content_type

        url = f"{self.base_url}/{quote(pathname)}"
        logger.info("Uploading blob pathname=%s bytes=%d", pathname, len(content))
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.put(url, content=content, headers=headers)
                resp.raise_for_status()
                body: Dict[str, Any] = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Blob upload rejected status=%s body=%s",
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise BlobStorageError(
                f"Blob upload failed with status {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Blob upload failed for %s: %s", pathname, exc)
            raise BlobStorageError(str(exc)) from exc

        if not body.get("url"):
            raise BlobStorageError("Blob API response did not include a url")
        return StoredBlob(
            url=body["url"],
            pathname=body.get("pathname", pathname),
            content_type=body.get("contentType"),
            download_url=body.get("downloadUrl"),
        )
