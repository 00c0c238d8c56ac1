"""
Storage Service - optional Cloudinary hosting for generated images.
"""

import asyncio
import logging
from typing import Optional

import cloudinary
import cloudinary.uploader

from app.config import settings

logger = logging.getLogger(__name__)


class StorageService:
    """
    Uploads generated PNGs to Cloudinary.

    Returns None when unconfigured or on failure so callers can keep
    the image inline instead.
    """

    def __init__(self):
        self.enabled = settings.storage_enabled
        self.folder = settings.cloudinary_folder
        if self.enabled:
            cloudinary.config(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
                secure=True,
            )

    async def upload_png(self, key: str, data_base64: str) -> Optional[str]:
        """Upload base64 PNG data under `key`, return the public URL."""
        if not self.enabled:
            logger.debug("Cloudinary not configured, keeping image inline")
            return None

        public_id = key.lstrip("/").rsplit(".", 1)[0]
        try:
            response = await asyncio.to_thread(
                cloudinary.uploader.upload,
                f"data:image/png;base64,{data_base64}",
                public_id=public_id,
                folder=self.folder,
                resource_type="image",
                overwrite=True,
            )
        except Exception as e:
            logger.error(f"Cloudinary upload failed for {key}: {e}")
            return None

        url = response.get("secure_url")
        if not url:
            logger.error(f"Cloudinary upload returned no URL for {key}")
            return None
        logger.info(f"Uploaded sketch {public_id}")
        return url
