"""
Tests for the Cloudinary image upload client.

Tests cover:
- Mock mode without credentials
- Request signing
- Upload and delete calls against a mocked transport
- Error handling
"""

import hashlib
import pytest
import httpx

from civic_issues.services.uploader import (
    MAX_IMAGE_BYTES,
    PLACEHOLDER_URL,
    ImageHostError,
    ImageUploader,
    InvalidImageError,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def configured_uploader(handler) -> ImageUploader:
    uploader = ImageUploader(
        cloud_name="demo",
        api_key="key_123",
        api_secret="secret_456",
        folder="civic-issues",
    )
    uploader._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return uploader


@pytest.mark.asyncio
@pytest.mark.services
class TestImageUploader:
    """Test suite for ImageUploader."""

    async def test_mock_mode_without_credentials(self):
        uploader = ImageUploader(cloud_name=None, api_key=None, api_secret=None)

        result = await uploader.upload(PNG_BYTES, "pothole.png", "image/png")

        assert uploader.is_mock
        assert result["url"] == PLACEHOLDER_URL
        assert result["public_id"].startswith("mock_")
        assert await uploader.delete(result["public_id"]) is True

    async def test_context_manager(self):
        uploader = ImageUploader(cloud_name="demo", api_key="k", api_secret="s")

        async with uploader as u:
            assert u._client is not None

        # Client should be closed after context
        assert uploader._client is None

    async def test_signature(self):
        uploader = ImageUploader(cloud_name="demo", api_key="k", api_secret="abcd")

        signature = uploader.sign({"timestamp": "1315060510", "folder": "civic"})

        expected = hashlib.sha1(b"folder=civic&timestamp=1315060510abcd").hexdigest()
        assert signature == expected

    @pytest.mark.parametrize(
        "content,content_type",
        [
            (b"", "image/png"),
            (b"%PDF-1.4", "application/pdf"),
            (b"\x00" * (MAX_IMAGE_BYTES + 1), "image/jpeg"),
        ],
    )
    async def test_invalid_images_rejected(self, content, content_type):
        uploader = ImageUploader(cloud_name=None, api_key=None, api_secret=None)

        with pytest.raises(InvalidImageError):
            await uploader.upload(content, "file", content_type)

    async def test_upload_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={
                "secure_url": "https://res.cloudinary.com/demo/image/upload/civic-issues/abc.png",
                "public_id": "civic-issues/abc",
            })

        uploader = configured_uploader(handler)
        result = await uploader.upload(PNG_BYTES, "pothole.png", "image/png")
        await uploader.close()

        assert result == {
            "url": "https://res.cloudinary.com/demo/image/upload/civic-issues/abc.png",
            "public_id": "civic-issues/abc",
        }
        assert seen["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
        assert b'name="signature"' in seen["body"]
        assert b'name="api_key"' in seen["body"]

    async def test_upload_error_status(self):
        uploader = configured_uploader(lambda request: httpx.Response(401, json={"error": "bad key"}))

        with pytest.raises(ImageHostError):
            await uploader.upload(PNG_BYTES, "pothole.png", "image/png")

    async def test_upload_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        uploader = configured_uploader(handler)

        with pytest.raises(ImageHostError, match="unreachable"):
            await uploader.upload(PNG_BYTES, "pothole.png", "image/png")

    async def test_delete(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/destroy")
            return httpx.Response(200, json={"result": "ok"})

        uploader = configured_uploader(handler)

        assert await uploader.delete("civic-issues/abc") is True

    async def test_delete_of_mock_upload_skips_host(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("Cloudinary should not be called")

        uploader = configured_uploader(handler)

        assert await uploader.delete("mock_1700000000000_abc123def") is True
