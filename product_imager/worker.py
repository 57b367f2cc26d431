from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from product_imager.config import settings
from product_imager.db import init_db
from product_imager.errors import ImportFormatError, NothingToExportError, QueueError
from product_imager.models.schemas import ItemStatus
from product_imager.queue import ProcessingQueue, build_processing_queue
from product_imager.services.documents import EXPORT_FILENAME, export_results, parse_categories
from product_imager.storage import ExportStorage

logger = logging.getLogger(__name__)


async def process_file(
    input_path: Path,
    output: str,
    queue: ProcessingQueue,
    storage: ExportStorage,
) -> Optional[Path]:
    """Run every pending item of `input_path` through the queue and save the export."""
    categories = parse_categories(input_path.read_bytes())
    await queue.load(categories)
    queue.credentials.load()
    await queue.refresh_authorization()

    try:
        snapshot = await queue.start()
    except QueueError as exc:
        logger.warning("Nothing processed: %s", exc)
    else:
        logger.info("Processing %d pending items with a %.1fs delay", snapshot.pending, queue.delay_seconds)
        await queue.join()
    finally:
        await queue.aclose()

    failed = [record for record in queue.items() if record.status is ItemStatus.failed]
    for record in failed:
        logger.warning("Item %s (%s) failed: %s", record.id, record.name, record.error.value)

    try:
        document = export_results(queue.items())
    except NothingToExportError as exc:
        logger.error("%s", exc)
        return None

    path = storage.save(output, document)
    snapshot = queue.snapshot()
    logger.info(
        "Exported %d of %d items to %s (%d failed)", snapshot.succeeded, snapshot.total, path, snapshot.failed
    )
    return path


def run_batch(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate and upload product images for a category list.")
    parser.add_argument("input", type=Path, help="JSON array of {id, name, url?} category objects.")
    parser.add_argument("--output", default=EXPORT_FILENAME, help="Export file name or absolute path.")
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to wait between items (defaults to PIG_PICKUP_DELAY_SECONDS).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    init_db()

    queue = build_processing_queue()
    if args.delay is not None:
        queue.delay_seconds = max(0.0, args.delay)
    storage = ExportStorage(settings.export_root)

    try:
        path = asyncio.run(process_file(args.input, args.output, queue, storage))
    except (OSError, ImportFormatError) as exc:
        logger.error("Batch run for %s failed: %s", args.input, exc)
        return 1
    return 0 if path is not None else 1


if __name__ == "__main__":
    sys.exit(run_batch())
