"""
Media Service Factory

Returns the mock CDN in development and Cloudinary otherwise.
"""

import logging
from functools import lru_cache

from foodapp.core.config import get_settings
from foodapp.services.media.base import BaseMediaService, UploadResult
from foodapp.services.media.mock import MockMediaService
from foodapp.services.media.cloudinary import CloudinaryMediaService

logger = logging.getLogger(__name__)


@lru_cache()
def get_media_service() -> BaseMediaService:
    settings = get_settings()

    if settings.is_development:
        logger.info("Media Service: Using MockMediaService (development mode)")
        return MockMediaService(folder=settings.cloudinary_folder)

    logger.info(f"Media Service: Using CloudinaryMediaService ({settings.env_mode.value} mode)")
    return CloudinaryMediaService()


def reset_media_service() -> None:
    get_media_service.cache_clear()


__all__ = [
    "get_media_service",
    "reset_media_service",
    "BaseMediaService",
    "UploadResult",
]
