# studygram/api/uploads.py
"""
Server-side file upload endpoint (multipart form).
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from studygram.api.dependencies import get_upload_service
from studygram.services.upload_service import UploadService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/upload-file")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    userId: Optional[str] = Form(None),
    path: Optional[str] = Form(None),
    service: UploadService = Depends(get_upload_service),
) -> Dict[str, Any]:
    service.ensure_configured()
    content = await file.read() if file is not None else None
    return await service.upload_file(
        user_id=userId,
        filename=file.filename if file is not None else None,
        content=content,
        content_type=file.content_type if file is not None else None,
        path=path,
    )
