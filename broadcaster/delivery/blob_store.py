"""
Blob storage client for externalized broadcast images.
"""
import hashlib
from typing import Optional, Protocol

import httpx

from ..errors import BlobUploadError
from ..logging_config import delivery_logger

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/svg+xml": "svg",
}


class BlobStore(Protocol):
    async def upload(self, owner_id, payload: bytes, content_type: str) -> str:
        """Store ``payload`` under the owner's scope and return its public URL."""
        ...


def object_path(owner_id, payload: bytes, content_type: str) -> str:
    """Content-addressed object path: same bytes, same path."""
    digest = hashlib.sha256(payload).hexdigest()[:32]
    ext = _EXTENSIONS.get(content_type) or content_type.split("/")[-1] or "bin"
    return f"broadcast-images/{owner_id}/{digest}.{ext}"


class StorageBlobStore:
    """Uploads to a storage bucket over its object REST API."""

    def __init__(
        self,
        base_url: str,
        service_key: Optional[str],
        bucket: str = "uploads",
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(self, owner_id, payload: bytes, content_type: str) -> str:
        if not self.service_key:
            raise BlobUploadError("Storage service key is not configured", 401)

        path = object_path(owner_id, payload, content_type)
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                    headers=headers,
                    content=payload,
                )
        except httpx.HTTPError as e:
            raise BlobUploadError(f"Upload failed: {e}") from e

        if response.status_code >= 400:
            raise BlobUploadError(response.text or f"HTTP {response.status_code}", response.status_code)

        url = self.public_url(path)
        delivery_logger.debug("Uploaded broadcast image", path=path, size=len(payload))
        return url
