from __future__ import annotations

import logging
import uuid
from typing import Optional

import httpx

from product_imager.errors import StorageNotConfiguredError, StorageUploadError
from product_imager.models.schemas import CredentialSet

logger = logging.getLogger(__name__)

UPLOAD_FOLDER = "product-images"
DEFAULT_EXTENSION = "jpg"


class BlobStorageClient:
    """Upload generated images to an Azure Blob container using a SAS token."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def upload(self, data: bytes, mime_type: str, credentials: CredentialSet) -> str:
        """Upload `data` and return its public URL (without the access token)."""
        if not credentials.is_configured:
            raise StorageNotConfiguredError()

        file_path = build_blob_path(mime_type)
        base = f"{credentials.storage_url.rstrip('/')}/{credentials.container.strip('/')}/{file_path}"
        upload_url = f"{base}{credentials.token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.put(
                    upload_url,
                    content=data,
                    headers={"x-ms-blob-type": "BlockBlob", "Content-Type": mime_type},
                )
        except httpx.RequestError as exc:
            raise StorageUploadError(f"CDN upload failed: {exc.__class__.__name__}") from exc

        if not response.is_success:
            raise StorageUploadError(
                f"CDN upload failed: {response.status_code} {response.reason_phrase}. Response: {response.text}",
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=response.text,
            )

        logger.debug("Uploaded %d bytes to %s", len(data), base)
        return base


def build_blob_path(mime_type: str) -> str:
    """Return a unique destination path under the upload folder for `mime_type`."""
    _, _, subtype = (mime_type or "").partition("/")
    extension = subtype.strip() or DEFAULT_EXTENSION
    return f"{UPLOAD_FOLDER}/{uuid.uuid4()}.{extension}"
