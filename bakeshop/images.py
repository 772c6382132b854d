from __future__ import annotations

import logging
import re
from typing import BinaryIO, Optional, Union

import cloudinary
import cloudinary.uploader
import requests

from bakeshop.config import Settings
from bakeshop.errors import ImageUploadError

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
UPLOAD_TIMEOUT_SECONDS = 30

# .../image/upload/[transformations/][v123/]<public_id>.<ext>
_DELIVERY_URL_RE = re.compile(r"/image/upload/(?:[^/]*,[^/]*/)*(?:v\d+/)?(?P<public_id>.+?)(?:\.[A-Za-z0-9]+)?$")


def public_id_from_url(url: str) -> Optional[str]:
    if not url or "res.cloudinary.com" not in url:
        return None
    m = _DELIVERY_URL_RE.search(url.split("?", 1)[0])
    return m.group("public_id") if m else None


class ImageStore:
    """
    Cloudinary-backed image hosting. Signed SDK uploads go to the fixed
    folder when API credentials are present; otherwise the unsigned upload
    preset is used over plain HTTPS.
    """

    def __init__(
        self,
        cloud_name: Optional[str],
        *,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        upload_preset: Optional[str] = None,
        folder: str = "inventory",
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.upload_preset = upload_preset
        self.folder = folder

        if self.signed:
            cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageStore":
        return cls(
            settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            upload_preset=settings.cloudinary_upload_preset,
            folder=settings.cloudinary_folder,
        )

    @property
    def signed(self) -> bool:
        return all([self.cloud_name, self.api_key, self.api_secret])

    @property
    def enabled(self) -> bool:
        return self.signed or bool(self.cloud_name and self.upload_preset)

    def upload(self, file: Union[bytes, BinaryIO], filename: str = "image") -> str:
        """Uploads an image and returns its secure URL."""
        if not self.enabled:
            raise ImageUploadError("Image hosting is not configured (set the CLOUDINARY_* variables).")

        try:
            if self.signed:
                result = cloudinary.uploader.upload(file, folder=self.folder, resource_type="image")
            else:
                resp = requests.post(
                    UPLOAD_URL.format(cloud_name=self.cloud_name),
                    data={"upload_preset": self.upload_preset},
                    files={"file": (filename, file)},
                    timeout=UPLOAD_TIMEOUT_SECONDS,
                )
                resp.raise_for_status()
                result = resp.json()
        except Exception as e:
            logger.error("Image upload failed for %s: %s", filename, e)
            raise ImageUploadError("Failed to upload image.") from e

        url = result.get("secure_url")
        if not url:
            raise ImageUploadError("Image host returned no URL.")
        logger.info("Image uploaded: %s", url)
        return url

    def delete(self, url: Optional[str]) -> bool:
        """Best-effort removal; failures are logged, never raised."""
        if not url:
            return False
        public_id = public_id_from_url(url)
        if public_id is None or not self.signed:
            logger.warning("Image not removed (unmanaged URL or unsigned store): %s", url)
            return False
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type="image")
        except Exception as e:
            logger.warning("Image delete failed for %s: %s", public_id, e)
            return False
        ok = result.get("result") == "ok"
        if not ok:
            logger.warning("Image delete for %s returned %s", public_id, result)
        return ok

    def replace(self, old_url: Optional[str], file: Union[bytes, BinaryIO], filename: str = "image") -> str:
        new_url = self.upload(file, filename)
        if old_url and old_url != new_url:
            self.delete(old_url)
        return new_url
