"""Exception hierarchy shared by the queue, the backend clients and the API."""

from __future__ import annotations

from typing import Optional


class ProductImagerError(Exception):
    """Base class for errors raised by the service."""


# ---------------------------------------------------------------------------
# Queue control errors, reported once to the caller
# ---------------------------------------------------------------------------
class QueueError(ProductImagerError):
    pass


class CredentialsNotConfiguredError(QueueError):
    def __init__(self) -> None:
        super().__init__("Storage credentials must be configured and saved before generating images.")


class AuthorizationRequiredError(QueueError):
    def __init__(self) -> None:
        super().__init__("An image API authorization must be selected before generating images.")


class NothingToProcessError(QueueError):
    def __init__(self) -> None:
        super().__init__("No pending items: upload a file or all items have been processed/skipped.")


class NothingToRetryError(QueueError):
    def __init__(self) -> None:
        super().__init__("No failed items to retry.")


class ItemNotFoundError(QueueError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class ItemBusyError(QueueError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Item {item_id} is already being processed")
        self.item_id = item_id


# ---------------------------------------------------------------------------
# Remote backend errors, classified into item error categories
# ---------------------------------------------------------------------------
class ImageBackendError(ProductImagerError):
    pass


class QuotaExceededError(ImageBackendError):
    pass


class InvalidAuthorizationError(ImageBackendError):
    pass


class ImageGenerationError(ImageBackendError):
    pass


class StorageBackendError(ProductImagerError):
    pass


class StorageNotConfiguredError(StorageBackendError):
    def __init__(self) -> None:
        super().__init__("Blob storage settings are not configured.")


class StorageUploadError(StorageBackendError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


# ---------------------------------------------------------------------------
# Document errors
# ---------------------------------------------------------------------------
class ImportFormatError(ProductImagerError):
    pass


class NothingToExportError(ProductImagerError):
    def __init__(self) -> None:
        super().__init__("No successfully processed categories to export.")
