"""
Cloudinary Media Service

Uploads images to Cloudinary, cropped to 400x300 for menu cards.
"""

import io
import logging
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from foodapp.core.config import get_settings
from foodapp.services.media.base import BaseMediaService, UploadResult

logger = logging.getLogger(__name__)


class CloudinaryMediaService(BaseMediaService):
    """Production image CDN backed by Cloudinary."""

    TRANSFORMATION = [
        {"width": 400, "height": 300, "crop": "fill"},
        {"quality": "auto", "fetch_format": "auto"},
    ]

    def __init__(self):
        settings = get_settings()

        if not settings.cloudinary_cloud_name:
            raise ValueError("CLOUDINARY_CLOUD_NAME is required for real image uploads")

        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )
        self.folder = settings.cloudinary_folder
        logger.info("CloudinaryMediaService initialized")

    @property
    def provider_name(self) -> str:
        return "cloudinary"

    async def upload_image(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
    ) -> UploadResult:
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                folder=folder or self.folder,
                resource_type="image",
                transformation=self.TRANSFORMATION,
            )
        except CloudinaryError as e:
            logger.error(f"Cloudinary upload failed for {filename}: {e}")
            return UploadResult(success=False, error_message=str(e))

        logger.info(f"Cloudinary: Uploaded {filename} as {result.get('public_id')}")

        return UploadResult(
            success=True,
            url=result.get("secure_url") or result.get("url"),
            public_id=result.get("public_id"),
            width=result.get("width"),
            height=result.get("height"),
            format=result.get("format"),
            size_bytes=result.get("bytes"),
        )

    async def delete_image(self, public_id: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(public_id)
        except CloudinaryError as e:
            logger.error(f"Cloudinary delete failed for {public_id}: {e}")
            return False
        return result.get("result") == "ok"
