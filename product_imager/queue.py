"""
Sequential processing queue.

The queue owns the ordered list of item records and drives pending items
through the single-item pipeline one at a time from a background asyncio task.
After each automatically processed item the task sleeps for a fixed delay
before the next pickup, which keeps the image backend under its rate limit.
Manual regeneration runs outside that task and is not paced.

All record updates are whole-record replacements performed under one lock.
Item ids claimed by a running pipeline call are tracked under the same lock
so that an id is never processed by two calls at once.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from product_imager.config import settings
from product_imager.db import session_scope
from product_imager.errors import (
    AuthorizationRequiredError,
    CredentialsNotConfiguredError,
    ImportFormatError,
    ItemBusyError,
    ItemNotFoundError,
    NothingToProcessError,
    NothingToRetryError,
    QueueError,
)
from product_imager.models.schemas import InputCategory, ItemError, ItemRecord, ItemStatus, QueueSnapshot
from product_imager.services.authorization import (
    ApiKeyAuthorization,
    AuthorizationProvider,
    DefaultAuthorization,
)
from product_imager.services.credentials import CredentialStore
from product_imager.services.image_backend import GeminiImageClient
from product_imager.services.pipeline import ImageBackend, ItemPipeline, StorageBackend, Updater
from product_imager.services.storage_backend import BlobStorageClient

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 10.0

Publisher = Callable[[Dict[str, Any]], Awaitable[None]]


def build_records(categories: Iterable[InputCategory]) -> List[ItemRecord]:
    """Create one record per category, preserving order and rejecting duplicate ids."""
    records: List[ItemRecord] = []
    seen: Set[int] = set()
    for category in categories:
        if category.id in seen:
            raise ImportFormatError(f"Duplicate category id {category.id}")
        seen.add(category.id)
        records.append(ItemRecord.from_category(category))
    return records


class ProcessingQueue:
    """Single-item-at-a-time scheduler for image generation and upload."""

    def __init__(
        self,
        image_client: ImageBackend,
        storage_client: StorageBackend,
        credentials: CredentialStore,
        authorization: Optional[AuthorizationProvider] = None,
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        publisher: Optional[Publisher] = None,
    ) -> None:
        self.credentials = credentials
        self.authorization = authorization or DefaultAuthorization()
        self.delay_seconds = delay_seconds
        self.publisher = publisher
        self._pipeline = ItemPipeline(
            image_client,
            storage_client,
            credentials,
            on_invalid_authorization=self._revoke_authorization,
        )

        self._items: List[ItemRecord] = []
        self._claimed: Set[int] = set()
        self._generation = 0
        self._running = False
        self._paused = False
        self._item_in_flight = False
        self._authorization_selected = True

        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: Optional[asyncio.Task] = None

    # ---------------------------------------------------------------------
    # Read models
    # ---------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def item_in_flight(self) -> bool:
        return self._item_in_flight

    @property
    def authorization_selected(self) -> bool:
        return self._authorization_selected

    def items(self) -> List[ItemRecord]:
        return list(self._items)

    def get(self, item_id: int) -> ItemRecord:
        return self._items[self._index_of(item_id)]

    def snapshot(self) -> QueueSnapshot:
        counts = {status: 0 for status in ItemStatus}
        for record in self._items:
            counts[record.status] += 1

        total = len(self._items)
        done = counts[ItemStatus.succeeded] + counts[ItemStatus.failed]
        progress = f"{min(done + 1, total)} / {total}" if self._running and total else None
        return QueueSnapshot(
            running=self._running,
            paused=self._paused,
            item_in_flight=self._item_in_flight,
            authorization_selected=self._authorization_selected,
            delay_seconds=self.delay_seconds,
            total=total,
            pending=counts[ItemStatus.pending],
            in_flight=counts[ItemStatus.in_flight],
            succeeded=counts[ItemStatus.succeeded],
            failed=counts[ItemStatus.failed],
            has_failures=counts[ItemStatus.failed] > 0,
            is_complete=total > 0 and done == total,
            progress=progress,
        )

    # ---------------------------------------------------------------------
    # Control operations
    # ---------------------------------------------------------------------
    async def load(self, categories: Iterable[InputCategory]) -> List[ItemRecord]:
        """Replace the item list. Items seeded with a URL start out succeeded."""
        records = build_records(categories)
        async with self._lock:
            self._items = records
            self._generation += 1
            self._running = False
            self._paused = False
            self._idle.set()
        logger.info(
            "Loaded %d items (%d already have a URL)",
            len(records),
            sum(1 for record in records if record.status is ItemStatus.succeeded),
        )
        await self._publish_state()
        return list(records)

    async def start(self) -> QueueSnapshot:
        async with self._lock:
            self._check_ready()
            if not any(record.status is ItemStatus.pending for record in self._items):
                raise NothingToProcessError()
            self._set_running()
        self._ensure_worker()
        logger.info("Processing started")
        await self._publish_state()
        return self.snapshot()

    async def pause(self) -> QueueSnapshot:
        async with self._lock:
            self._paused = True
        logger.info("Processing paused")
        await self._publish_state()
        return self.snapshot()

    async def resume(self) -> QueueSnapshot:
        async with self._lock:
            self._paused = False
            self._wakeup.set()
        logger.info("Processing resumed")
        await self._publish_state()
        return self.snapshot()

    async def retry_failed(self) -> int:
        """Move every failed item back to pending and start processing.

        Returns the number of items that were reset.
        """
        async with self._lock:
            failed_ids = {record.id for record in self._items if record.status is ItemStatus.failed}
            if not failed_ids:
                raise NothingToRetryError()
            self._check_ready()
            self._items = [
                record.model_copy(update={"status": ItemStatus.pending, "error": None})
                if record.status is ItemStatus.failed
                else record
                for record in self._items
            ]
            reset = [record for record in self._items if record.id in failed_ids]
            self._set_running()
        self._ensure_worker()
        logger.info("Retrying %d failed items", len(reset))
        for record in reset:
            await self._publish_item(record)
        await self._publish_state()
        return len(reset)

    async def update_prompt(self, item_id: int, prompt: str) -> ItemRecord:
        prompt = _validate_prompt(prompt)
        async with self._lock:
            index = self._index_of(item_id)
            record = self._items[index].model_copy(update={"prompt": prompt})
            self._items[index] = record
        await self._publish_item(record)
        return record

    async def regenerate_one(self, item_id: int, prompt: str) -> ItemRecord:
        """Set a new prompt and run the pipeline for one item immediately.

        Works whether the queue is running, paused or stopped, and ignores the
        inter-item delay.
        """
        prompt = _validate_prompt(prompt)
        async with self._lock:
            index = self._index_of(item_id)
            if item_id in self._claimed:
                raise ItemBusyError(item_id)
            self._check_ready()
            record = self._items[index].model_copy(update={"prompt": prompt})
            self._items[index] = record
            self._claimed.add(item_id)
            generation = self._generation

        logger.info("Regenerating item %s (%s)", record.id, record.name)
        await self._publish_item(record)
        try:
            result = await self._pipeline.run(record, self._updater(generation))
        except asyncio.CancelledError:
            await self._abandon(item_id, generation)
            raise
        finally:
            await self._release(item_id)
        return result or record

    async def refresh_authorization(self) -> bool:
        self._authorization_selected = await self.authorization.has_authorization()
        return self._authorization_selected

    async def request_authorization(self) -> bool:
        self._authorization_selected = await self.authorization.request_authorization()
        await self._publish_state()
        return self._authorization_selected

    async def join(self) -> None:
        """Wait until the queue stops running."""
        await self._idle.wait()

    async def aclose(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    # ---------------------------------------------------------------------
    # Drain loop
    # ---------------------------------------------------------------------
    def _ensure_worker(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._drain(), name="processing-queue")

    async def _drain(self) -> None:
        while True:
            picked = await self._pick_next()
            if picked is None:
                await self._wakeup.wait()
                continue

            record, generation = picked
            try:
                try:
                    await self._pipeline.run(record, self._updater(generation))
                except asyncio.CancelledError:
                    await self._abandon(record.id, generation)
                    raise
                finally:
                    await self._release(record.id)
                await asyncio.sleep(self.delay_seconds)
            finally:
                async with self._lock:
                    self._item_in_flight = False
                    self._wakeup.set()

    async def _pick_next(self) -> Optional[tuple[ItemRecord, int]]:
        stopped = False
        halted = None
        picked = None
        async with self._lock:
            self._wakeup.clear()
            if not self._running or self._paused or self._item_in_flight:
                return None

            pending = [record for record in self._items if record.status is ItemStatus.pending]
            candidate = next((record for record in pending if record.id not in self._claimed), None)
            if not pending:
                self._running = False
                self._idle.set()
                stopped = True
            elif candidate is not None:
                halted = self._blocked_reason()
                if halted is not None:
                    self._running = False
                    self._idle.set()
                else:
                    self._claimed.add(candidate.id)
                    self._item_in_flight = True
                    picked = (candidate, self._generation)

        if stopped:
            logger.info("No pending items left; processing finished")
            await self._publish_state()
            return None
        if halted is not None:
            logger.warning("Processing stopped before item %s: %s", candidate.id, halted)
            await self._publish_state()
            return None
        if picked is None:
            return None
        logger.info("Processing item %s (%s)", candidate.id, candidate.name)
        return picked

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    def _blocked_reason(self) -> Optional[QueueError]:
        if not self.credentials.is_configured:
            return CredentialsNotConfiguredError()
        if not self._authorization_selected:
            return AuthorizationRequiredError()
        return None

    def _check_ready(self) -> None:
        error = self._blocked_reason()
        if error is not None:
            raise error

    def _set_running(self) -> None:
        self._running = True
        self._paused = False
        self._idle.clear()
        self._wakeup.set()

    def _index_of(self, item_id: int) -> int:
        for index, record in enumerate(self._items):
            if record.id == item_id:
                return index
        raise ItemNotFoundError(item_id)

    def _revoke_authorization(self) -> None:
        logger.warning("Image API rejected the configured key; authorization must be selected again")
        self._authorization_selected = False

    def _updater(self, generation: int) -> Updater:
        async def update(item_id: int, **changes: Any) -> Optional[ItemRecord]:
            async with self._lock:
                if generation != self._generation:
                    return None
                for index, record in enumerate(self._items):
                    if record.id == item_id:
                        updated = record.model_copy(update=changes)
                        self._items[index] = updated
                        break
                else:
                    return None
            await self._publish_item(updated)
            return updated

        return update

    async def _abandon(self, item_id: int, generation: int) -> None:
        """Record a cancelled pipeline call as failed if it left its item in flight."""
        async with self._lock:
            if generation != self._generation:
                return
            index = self._index_of(item_id)
            record = self._items[index]
            if record.status is not ItemStatus.in_flight:
                return
            record = record.model_copy(update={"status": ItemStatus.failed, "error": ItemError.generation_failed})
            self._items[index] = record
        logger.warning("Processing of item %s (%s) was cancelled", record.id, record.name)
        await self._publish_item(record)

    async def _release(self, item_id: int) -> None:
        async with self._lock:
            self._claimed.discard(item_id)
            self._wakeup.set()

    async def _publish_item(self, record: ItemRecord) -> None:
        await self._publish({"type": "item", "item": record.model_dump(mode="json")})

    async def _publish_state(self) -> None:
        await self._publish({"type": "queue", "state": self.snapshot().model_dump(mode="json")})

    async def _publish(self, message: Dict[str, Any]) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher(message)
        except Exception:
            logger.exception("Failed to publish %s update", message.get("type"))


def _validate_prompt(prompt: str) -> str:
    prompt = (prompt or "").strip()
    if not prompt:
        raise ValueError("Prompt must not be empty.")
    return prompt


def build_processing_queue(publisher: Optional[Publisher] = None) -> ProcessingQueue:
    """Return a queue wired to the configured image and storage backends."""
    authorization: AuthorizationProvider
    if settings.require_api_key:
        authorization = ApiKeyAuthorization(settings.gemini_api_key)
    else:
        authorization = DefaultAuthorization()

    return ProcessingQueue(
        image_client=GeminiImageClient(settings.gemini_api_key, settings.image_model),
        storage_client=BlobStorageClient(timeout_seconds=settings.upload_timeout_seconds),
        credentials=CredentialStore(session_scope),
        authorization=authorization,
        delay_seconds=settings.pickup_delay_seconds,
        publisher=publisher,
    )
