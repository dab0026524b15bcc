"""
Media Service Abstract Base Class

Image uploads for menu items, categories and offer banners.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class UploadResult:
    """Result from uploading an image to the CDN."""
    success: bool
    url: Optional[str] = None
    public_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    size_bytes: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "url": self.url,
            "public_id": self.public_id,
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "size_bytes": self.size_bytes,
            "error_message": self.error_message,
        }


class BaseMediaService(ABC):
    """Abstract base class for image CDN services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def upload_image(
        self,
        data: bytes,
        filename: str,
        folder: Optional[str] = None,
    ) -> UploadResult:
        """Upload image bytes, resized for menu cards."""
        pass

    @abstractmethod
    async def delete_image(self, public_id: str) -> bool:
        pass
