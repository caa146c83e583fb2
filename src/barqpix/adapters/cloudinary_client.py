"""Cloudinary image storage over the REST upload API."""

import hashlib
import time
from dataclasses import dataclass

import httpx

from barqpix.domain.errors import StorageError
from barqpix.domain.photos import StoredImage
from barqpix.services.photos import ImageStorage

_API_BASE = "https://api.cloudinary.com/v1_1"
_DESTROY_OK = {"ok", "not found"}


@dataclass
class HttpxCloudinaryClient(ImageStorage):
    """Signed Cloudinary uploads and deletions using httpx."""

    cloud_name: str
    api_key: str
    api_secret: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, cloud_name: str, api_key: str, api_secret: str
    ) -> "HttpxCloudinaryClient":
        """Create a Cloudinary client with a managed httpx session."""
        return cls(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            http_client=httpx.AsyncClient(),
        )

    async def upload(self, content: bytes, filename: str, folder: str) -> StoredImage:
        """Upload an image into a folder and return its secure URL."""
        params = self._signed({"folder": folder})
        try:
            response = await self.http_client.post(
                f"{_API_BASE}/{self.cloud_name}/image/upload",
                data=params,
                files={"file": (filename, content)},
                timeout=60,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError("Image upload failed") from exc
        payload = response.json()
        if "secure_url" not in payload or "public_id" not in payload:
            raise StorageError("Image upload returned no URL")
        return StoredImage(url=payload["secure_url"], public_id=payload["public_id"])

    async def destroy(self, public_id: str) -> None:
        """Delete an image; a missing image counts as deleted."""
        params = self._signed({"public_id": public_id})
        try:
            response = await self.http_client.post(
                f"{_API_BASE}/{self.cloud_name}/image/destroy",
                data=params,
                timeout=15,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Image delete failed for {public_id}") from exc
        result = response.json().get("result")
        if result not in _DESTROY_OK:
            raise StorageError(f"Image delete failed for {public_id}: {result}")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        signed = {**params, "timestamp": str(int(time.time()))}
        signed["signature"] = sign_params(signed, self.api_secret)
        signed["api_key"] = self.api_key
        return signed


def sign_params(params: dict[str, str], api_secret: str) -> str:
    """Compute Cloudinary's SHA-1 request signature."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(
        f"{to_sign}{api_secret}".encode(), usedforsecurity=False
    ).hexdigest()
