"""
Mock Media Service

Pretends to upload images and returns placeholder CDN URLs.
"""

import logging
import uuid
from pathlib import PurePath
from typing import Optional

from foodapp.services.media.base import BaseMediaService, UploadResult

logger = logging.getLogger(__name__)


class MockMediaService(BaseMediaService):
    """Development stand-in for the image CDN."""

    def __init__(self, folder: str = "menu-items"):
        self.folder = folder
        self.uploaded: dict[str, int] = {}

    @property
    def provider_name(self) -> str:
        return "mock"

    async def upload_image(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
    ) -> UploadResult:
        folder = folder or self.folder
        suffix = PurePath(filename).suffix.lstrip(".").lower() or "jpg"
        public_id = f"{folder}/mock_{uuid.uuid4().hex[:16]}"
        self.uploaded[public_id] = len(data)

        logger.info(f"Mock: Uploaded {filename} ({len(data)} bytes) as {public_id}")

        return UploadResult(
            success=True,
            url=f"https://cdn.mock.local/image/upload/w_400,h_300,c_fill/{public_id}.{suffix}",
            public_id=public_id,
            width=400,
            height=300,
            format=suffix,
            size_bytes=len(data),
        )

    async def delete_image(self, public_id: str) -> bool:
        return self.uploaded.pop(public_id, None) is not None
