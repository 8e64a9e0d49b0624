"""
Image upload client for the Cloudinary REST API.

Uploads are signed with the account's API secret. When Cloudinary is not
configured the client runs in mock mode and returns placeholder results,
so local development works without credentials.
"""

import hashlib
import logging
import time
from typing import Dict, Optional
from uuid import uuid4

import httpx

logger = logging.getLogger(__name__)

MOCK_PREFIX = "mock_"
PLACEHOLDER_URL = "/api/uploads/placeholder"

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class ImageHostError(Exception):
    """Raised when the image host rejects a request or cannot be reached."""
    pass


class InvalidImageError(ValueError):
    """Raised when an upload is not an acceptable image."""
    pass


class ImageUploader:
    """Async Cloudinary client with a mock fallback."""

    BASE_URL_TEMPLATE = "https://api.cloudinary.com/v1_1/{cloud_name}/image"

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        folder: str = "civic-issues",
    ):
        """
        Initialize the uploader.

        Args:
            cloud_name: Cloudinary cloud name; mock mode when missing
            api_key: Cloudinary API key
            api_secret: Cloudinary API secret used for request signatures
            folder: Folder uploads are stored under
        """
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_mock(self) -> bool:
        return not (self.cloud_name and self.api_key and self.api_secret)

    @property
    def base_url(self) -> str:
        return self.BASE_URL_TEMPLATE.format(cloud_name=self.cloud_name)

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_client(self):
        """Ensure HTTP client is initialized."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)

    async def close(self):
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def sign(self, params: Dict[str, str]) -> str:
        """
        Cloudinary request signature.

        Parameters are sorted by name, joined as ``key=value`` pairs with
        ``&``, suffixed with the API secret and SHA-1 hashed.
        """
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        params = dict(params, timestamp=str(int(time.time())))
        return dict(params, api_key=self.api_key, signature=self.sign(params))

    @staticmethod
    def validate(content: bytes, content_type: Optional[str]) -> None:
        """
        Raises:
            InvalidImageError: If the file is empty, too big or not an image
        """
        if not content:
            raise InvalidImageError("No file provided")
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise InvalidImageError(f"Unsupported image type: {content_type}")
        if len(content) > MAX_IMAGE_BYTES:
            raise InvalidImageError(
                f"Image too large. Maximum size: {MAX_IMAGE_BYTES // (1024 * 1024)}MB"
            )

    async def upload(self, content: bytes, filename: str, content_type: str) -> Dict[str, str]:
        """
        Upload an image.

        Args:
            content: Raw image bytes
            filename: Original filename
            content_type: MIME type of the image

        Returns:
            ``{"url": ..., "public_id": ...}``

        Raises:
            InvalidImageError: If the file is not an acceptable image
            ImageHostError: If Cloudinary rejects the upload or is unreachable
        """
        self.validate(content, content_type)

        if self.is_mock:
            public_id = f"{MOCK_PREFIX}{int(time.time() * 1000)}_{uuid4().hex[:9]}"
            logger.warning(f"Cloudinary not configured, returning mock upload {public_id}")
            return {"url": PLACEHOLDER_URL, "public_id": public_id}

        await self._ensure_client()
        try:
            response = await self._client.post(
                f"{self.base_url}/upload",
                data=self._signed({"folder": self.folder}),
                files={"file": (filename, content, content_type)},
            )
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary upload request failed: {e}")
            raise ImageHostError(f"Image host unreachable: {e}")

        if response.status_code >= 400:
            logger.error(f"Cloudinary upload error {response.status_code}: {response.text}")
            raise ImageHostError(f"Image host returned {response.status_code}")

        data = response.json()
        logger.info(f"Uploaded image {data.get('public_id')}")
        return {"url": data["secure_url"], "public_id": data["public_id"]}

    async def delete(self, public_id: str) -> bool:
        """
        Delete an uploaded image.

        Mock uploads and mock mode succeed without contacting Cloudinary.

        Returns:
            True if the image was deleted (or was a mock)

        Raises:
            ImageHostError: If Cloudinary cannot be reached
        """
        if public_id.startswith(MOCK_PREFIX) or self.is_mock:
            logger.info(f"Mock image deletion: {public_id}")
            return True

        await self._ensure_client()
        try:
            response = await self._client.post(
                f"{self.base_url}/destroy",
                data=self._signed({"public_id": public_id}),
            )
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary delete request failed: {e}")
            raise ImageHostError(f"Image host unreachable: {e}")

        if response.status_code >= 400:
            raise ImageHostError(f"Image host returned {response.status_code}")

        return response.json().get("result") == "ok"


def get_uploader() -> ImageUploader:
    """
    Factory function to create an ImageUploader with config from settings.
    """
    from civic_issues.config import settings

    return ImageUploader(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        folder=settings.CLOUDINARY_FOLDER,
    )
