# zyra/services/storage_service.py
import asyncio
import base64
import logging
from dataclasses import dataclass

import cloudinary
import cloudinary.uploader

from zyra.core.config import settings
from zyra.core.exceptions import StorageConfigurationException, UpstreamServiceException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    url: str
    public_id: str


class StorageService:
    """Thin wrapper over the Cloudinary uploader for raw PDF assets."""

    def __init__(
        self,
        cloud_name: str = "",
        api_key: str = "",
        api_secret: str = "",
        folder: str = "zyra-pdfs",
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder

    @classmethod
    def from_settings(cls) -> "StorageService":
        return cls(
            cloud_name=settings.CLOUD_NAME,
            api_key=settings.CLOUD_API_KEY,
            api_secret=settings.CLOUD_API_SECRET,
            folder=settings.CLOUD_FOLDER,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def ensure_configured(self) -> None:
        if not self.is_configured:
            logger.error("Missing Cloudinary credentials!")
            raise StorageConfigurationException()
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=self.api_key,
            api_secret=self.api_secret,
            secure=True,
        )

    async def upload_pdf(self, data: bytes, public_id: str) -> StoredFile:
        """Uploads the PDF bytes once; provider errors surface as UpstreamServiceException."""
        self.ensure_configured()
        encoded = base64.b64encode(data).decode("ascii")
        if not encoded:
            raise UpstreamServiceException("Failed to convert file to base64")

        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                f"data:application/pdf;base64,{encoded}",
                resource_type="raw",
                folder=self.folder,
                public_id=public_id,
                format="pdf",
            )
        except Exception as exc:
            logger.error("Cloudinary upload failed: %s", exc)
            raise UpstreamServiceException("Failed to upload PDF") from exc

        return StoredFile(url=result["secure_url"], public_id=result["public_id"])

    async def delete_file_best_effort(self, public_id: str) -> bool:
        """Removes a stored file; failures are logged and never raised."""
        try:
            self.ensure_configured()
            await asyncio.to_thread(cloudinary.uploader.destroy, public_id, resource_type="raw")
            return True
        except Exception as exc:
            logger.error("Error deleting %s from Cloudinary: %s", public_id, exc)
            return False
