# path: graftrack-api/graftrack/api/routes/objects.py

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from graftrack.api.deps import get_objects
from graftrack.models.entity_models import UploadURLResponse
from graftrack.services.object_storage import ObjectStorageService

router = APIRouter(prefix="/api/objects", tags=["objects"])


@router.post("/upload", response_model=UploadURLResponse)
def get_upload_url(objects: ObjectStorageService = Depends(get_objects)) -> UploadURLResponse:
    try:
        return UploadURLResponse(upload_url=objects.get_upload_url())
    except Exception as e:
        logger.error(f"Error generating upload URL: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate upload URL")
