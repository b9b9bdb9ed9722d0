import base64
import binascii
import logging
import os
import re
import secrets
import time
from pathlib import Path
from typing import Optional

from errors import NotFound, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/([a-z]+);base64,")
EXTENSIONS = {"jpeg": "jpg", "jpg": "jpg", "png": "png", "gif": "gif", "webp": "webp"}
FALLBACK_IMAGE = "/images/prod1.png"


class ImageService:
    """Product images written to a shared static directory served at ``base_url``."""

    def __init__(self, image_dir: str, base_url: str = "/images"):
        self.image_dir = Path(image_dir)
        self.base_url = base_url

    def ensure_image_directory(self) -> None:
        if not self.image_dir.exists():
            self.image_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created image directory: %s", self.image_dir)

    @staticmethod
    def is_base64_image(data: Optional[str]) -> bool:
        return bool(data) and data.startswith("data:image/")

    @staticmethod
    def extension_from_base64(data: str) -> str:
        match = DATA_URL_PREFIX.match(data)
        if match:
            return EXTENSIONS.get(match.group(1), "jpg")
        return "jpg"

    @staticmethod
    def unique_name(extension: str) -> str:
        return f"product_{int(time.time() * 1000)}_{secrets.token_hex(4)}{extension}"

    def _write(self, filename: str, content: bytes) -> str:
        self.ensure_image_directory()
        try:
            (self.image_dir / filename).write_bytes(content)
        except OSError as exc:
            logger.error("Error saving image %s: %s", filename, exc)
            raise UpstreamError("Failed to save image") from exc
        return f"{self.base_url}/{filename}"

    def save_base64_image(self, data: str, original_name: Optional[str] = None) -> str:
        payload = DATA_URL_PREFIX.sub("", data)
        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("Invalid base64 image data") from exc

        filename = self.unique_name("." + self.extension_from_base64(data))
        url = self._write(filename, content)
        logger.info("Image saved: %s (%s)", filename, original_name or "unnamed")
        return url

    def save_uploaded_file(self, original_name: str, content: bytes) -> str:
        filename = self.unique_name(os.path.splitext(original_name or "")[1].lower())
        url = self._write(filename, content)
        logger.info("Uploaded image saved: %s", filename)
        return url

    def is_managed(self, url: Optional[str]) -> bool:
        """True for images this service wrote and may delete."""
        return bool(url) and url.startswith(self.base_url + "/") and "placeholder" not in url

    def delete_image(self, url_or_name: str) -> None:
        path = self.image_dir / os.path.basename(url_or_name)
        if not path.is_file():
            logger.warning("Image file not found: %s", path.name)
            raise NotFound("Image file not found")
        try:
            path.unlink()
        except OSError as exc:
            logger.error("Error deleting image %s: %s", path.name, exc)
            raise UpstreamError("Failed to delete image") from exc
        logger.info("Image deleted: %s", path.name)
