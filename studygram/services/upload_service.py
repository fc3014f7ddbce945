# studygram/services/upload_service.py
"""
Server-side course file uploads to blob storage.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, Optional

from studygram.errors import BadRequest, ServiceMisconfigured, UpstreamFailure
from studygram.services.blob_storage import BlobStorageClient, BlobStorageError

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_DIR = "uploads"
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def build_blob_path(original_name: str, path: Optional[str] = None, now_ms: Optional[int] = None) -> Dict[str, str]:
    """Unique `{epoch_ms}-{sanitized}` file name under `path` (default "uploads")."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    file_name = f"{timestamp}-{sanitize_filename(original_name)}"
    return {"file_name": file_name, "file_path": f"{path or DEFAULT_UPLOAD_DIR}/{file_name}"}


class UploadService:

    def __init__(self, blob: BlobStorageClient):
        self.blob = blob

    def ensure_configured(self) -> None:
        if not self.blob.configured:
            raise ServiceMisconfigured(
                "BLOB_READ_WRITE_TOKEN environment variable is not configured"
            )

    async def upload_file(
        self,
        user_id: Optional[str],
        filename: Optional[str],
        content: Optional[bytes],
        content_type: Optional[str] = None,
        path: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.ensure_configured()
        if content is None or not filename:
            raise BadRequest("No file provided")
        if not user_id:
            raise BadRequest("User ID required")

        names = build_blob_path(filename, path)
        logger.info(
            "Server-side upload user=%s file=%s path=%s size=%d type=%s",
            user_id,
            names["file_name"],
            names["file_path"],
            len(content),
            content_type,
        )

        try:
            stored = await self.blob.put(names["file_path"], content, content_type=content_type)
        except BlobStorageError as exc:
            logger.error("Server upload error: %s", exc)
            raise UpstreamFailure("Upload failed", details=str(exc)) from exc

        logger.info("Server upload successful: %s", stored.url)
        return {
            "success": True,
            "url": stored.url,
            "size": len(content),
            "type": content_type,
            "name": filename,
            "originalName": filename,
            "fileName": names["file_name"],
        }
