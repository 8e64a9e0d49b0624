"""
Image upload endpoints backed by Cloudinary (or mock mode).
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from civic_issues.api.deps import get_current_user
from civic_issues.errors import ServiceUnavailableError, ValidationFailedError
from civic_issues.models import User
from civic_issues.schemas import MessageResponse
from civic_issues.services.uploader import (
    ImageHostError,
    ImageUploader,
    InvalidImageError,
    get_uploader,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])

# Shown in place of photos uploaded in mock mode
PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="300" viewBox="0 0 400 300">'
    '<rect width="400" height="300" fill="#e5e7eb"/>'
    '<text x="200" y="155" font-family="sans-serif" font-size="20" fill="#6b7280" '
    'text-anchor="middle">Image unavailable</text></svg>'
)


class UploadResponse(BaseModel):
    url: str
    public_id: str


@router.post("", response_model=UploadResponse, status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    _: User = Depends(get_current_user),
    uploader: ImageUploader = Depends(get_uploader),
):
    """Upload one issue photo (JPEG, PNG, WebP or GIF, at most 5MB)."""
    content = await file.read()
    try:
        async with uploader:
            result = await uploader.upload(content, file.filename or "upload", file.content_type)
    except InvalidImageError as e:
        raise ValidationFailedError(str(e), details={"field": "file"})
    except ImageHostError as e:
        raise ServiceUnavailableError(f"Image upload failed: {e}")
    return UploadResponse(**result)


@router.delete("/{public_id:path}", response_model=MessageResponse)
async def delete_image(
    public_id: str,
    _: User = Depends(get_current_user),
    uploader: ImageUploader = Depends(get_uploader),
):
    try:
        async with uploader:
            deleted = await uploader.delete(public_id)
    except ImageHostError as e:
        raise ServiceUnavailableError(f"Image deletion failed: {e}")

    if not deleted:
        logger.warning(f"Image host did not delete {public_id}")
    return MessageResponse(message="Image deleted" if deleted else "Image not found")


@router.get("/placeholder")
async def placeholder_image():
    return Response(content=PLACEHOLDER_SVG, media_type="image/svg+xml")
