from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from product_imager.errors import (
    ImageBackendError,
    InvalidAuthorizationError,
    QuotaExceededError,
    StorageBackendError,
)
from product_imager.models.schemas import CredentialSet, ItemError, ItemRecord, ItemStatus
from product_imager.services.credentials import CredentialStore
from product_imager.services.image_backend import GeneratedImage

logger = logging.getLogger(__name__)

Updater = Callable[..., Awaitable[Optional[ItemRecord]]]


class ImageBackend(Protocol):
    async def generate(self, prompt: str) -> GeneratedImage: ...


class StorageBackend(Protocol):
    async def upload(self, data: bytes, mime_type: str, credentials: CredentialSet) -> str: ...


def classify_failure(exc: BaseException) -> ItemError:
    """Map a remote failure onto the user-facing item error category."""
    if isinstance(exc, QuotaExceededError):
        return ItemError.quota_exceeded
    if isinstance(exc, InvalidAuthorizationError):
        return ItemError.invalid_api_key
    if isinstance(exc, StorageBackendError):
        return ItemError.upload_failed
    return ItemError.generation_failed


class ItemPipeline:
    """Generate then upload the image of a single item.

    `run` emits the intermediate in-flight update first and always finishes
    with exactly one terminal update (succeeded or failed). Remote failures are
    recorded on the item instead of being raised.
    """

    def __init__(
        self,
        image_client: ImageBackend,
        storage_client: StorageBackend,
        credentials: CredentialStore,
        on_invalid_authorization: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.image_client = image_client
        self.storage_client = storage_client
        self.credentials = credentials
        self.on_invalid_authorization = on_invalid_authorization

    async def run(self, item: ItemRecord, update: Updater) -> Optional[ItemRecord]:
        if await update(item.id, status=ItemStatus.in_flight, error=None, url="") is None:
            logger.info("Item %s is no longer loaded; skipping", item.id)
            return None

        if not self.credentials.is_configured:
            logger.warning("Skipping item %s (%s): storage credentials are not configured", item.id, item.name)
            return await update(item.id, status=ItemStatus.failed, error=ItemError.not_configured)

        try:
            image = await self.image_client.generate(item.prompt)
        except Exception as exc:
            error = classify_failure(exc)
            if error is ItemError.invalid_api_key and self.on_invalid_authorization is not None:
                self.on_invalid_authorization()
            if isinstance(exc, ImageBackendError):
                logger.warning("Failed to generate image for %s (item %s): %s", item.name, item.id, exc)
            else:
                logger.exception("Unexpected error generating image for %s (item %s)", item.name, item.id)
            return await update(item.id, status=ItemStatus.failed, error=error)

        try:
            url = await self.storage_client.upload(image.data, image.mime_type, self.credentials.current)
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            logger.warning(
                "Failed to upload image for %s (item %s, status=%s): %s", item.name, item.id, status_code, exc
            )
            return await update(item.id, status=ItemStatus.failed, error=ItemError.upload_failed)

        logger.info("Item %s (%s) stored at %s", item.id, item.name, url)
        return await update(item.id, status=ItemStatus.succeeded, url=url, error=None)
