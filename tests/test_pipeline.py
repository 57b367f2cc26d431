import asyncio

from fakes import FakeImageClient, FakeStorageClient

from product_imager.errors import (
    ImageGenerationError,
    InvalidAuthorizationError,
    QuotaExceededError,
    StorageNotConfiguredError,
    StorageUploadError,
)
from product_imager.models.schemas import InputCategory, ItemError, ItemRecord, ItemStatus
from product_imager.services.pipeline import ItemPipeline, classify_failure


class RecordingUpdater:
    def __init__(self, record: ItemRecord) -> None:
        self.record = record
        self.history = []

    async def __call__(self, item_id, **changes):
        assert item_id == self.record.id
        self.record = self.record.model_copy(update=changes)
        self.history.append(changes)
        return self.record


def seeded_failure() -> ItemRecord:
    record = ItemRecord.from_category(InputCategory(id=7, name="Lamp"))
    return record.model_copy(update={"status": ItemStatus.failed, "error": ItemError.quota_exceeded})


def test_classify_failure_categories():
    assert classify_failure(QuotaExceededError("429")) is ItemError.quota_exceeded
    assert classify_failure(InvalidAuthorizationError("bad key")) is ItemError.invalid_api_key
    assert classify_failure(StorageUploadError("CDN upload failed", status_code=500)) is ItemError.upload_failed
    assert classify_failure(StorageNotConfiguredError()) is ItemError.upload_failed
    assert classify_failure(ImageGenerationError("No image was generated.")) is ItemError.generation_failed
    assert classify_failure(RuntimeError("boom")) is ItemError.generation_failed


def test_pipeline_emits_in_flight_then_success(credential_store):
    updater = RecordingUpdater(seeded_failure())
    pipeline = ItemPipeline(FakeImageClient(), FakeStorageClient(), credential_store)

    result = asyncio.run(pipeline.run(updater.record, updater))

    assert updater.history[0] == {"status": ItemStatus.in_flight, "error": None, "url": ""}
    assert len(updater.history) == 2
    assert result.status is ItemStatus.succeeded
    assert result.error is None
    assert result.url


def test_pipeline_skips_upload_after_generation_failure(credential_store):
    image = FakeImageClient()
    image.fail("Lamp", ImageGenerationError("No image was generated."))
    storage = FakeStorageClient()
    updater = RecordingUpdater(seeded_failure())
    pipeline = ItemPipeline(image, storage, credential_store)

    result = asyncio.run(pipeline.run(updater.record, updater))

    assert result.status is ItemStatus.failed
    assert result.error is ItemError.generation_failed
    assert storage.uploads == []


def test_pipeline_unexpected_error_is_recorded(credential_store):
    image = FakeImageClient()
    image.fail("Lamp", KeyError("candidates"))
    updater = RecordingUpdater(seeded_failure())
    pipeline = ItemPipeline(image, FakeStorageClient(), credential_store)

    result = asyncio.run(pipeline.run(updater.record, updater))

    assert result.error is ItemError.generation_failed


def test_pipeline_reports_invalid_authorization(credential_store):
    revoked = []
    image = FakeImageClient()
    image.fail("Lamp", InvalidAuthorizationError("Requested entity was not found."))
    updater = RecordingUpdater(seeded_failure())
    pipeline = ItemPipeline(image, FakeStorageClient(), credential_store, on_invalid_authorization=lambda: revoked.append(1))

    result = asyncio.run(pipeline.run(updater.record, updater))

    assert result.error is ItemError.invalid_api_key
    assert revoked == [1]


def test_pipeline_fails_fast_without_credentials(empty_credential_store):
    image = FakeImageClient()
    updater = RecordingUpdater(seeded_failure())
    pipeline = ItemPipeline(image, FakeStorageClient(), empty_credential_store)

    result = asyncio.run(pipeline.run(updater.record, updater))

    assert result.status is ItemStatus.failed
    assert result.error is ItemError.not_configured
    assert image.calls == []


def test_pipeline_stops_when_item_is_gone(credential_store):
    image = FakeImageClient()
    pipeline = ItemPipeline(image, FakeStorageClient(), credential_store)

    async def missing(item_id, **changes):
        return None

    result = asyncio.run(pipeline.run(seeded_failure(), missing))

    assert result is None
    assert image.calls == []
