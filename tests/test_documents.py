import asyncio
import json

import pytest

from product_imager.errors import ImportFormatError, NothingToExportError
from product_imager.models.schemas import InputCategory, ItemError, ItemRecord, ItemStatus
from product_imager.queue import ProcessingQueue
from product_imager.services.documents import export_results, parse_categories

from fakes import FakeImageClient, FakeStorageClient


def test_parse_categories_preserves_order_and_optional_url():
    document = json.dumps([{"id": 3, "name": "Lamp"}, {"id": 1, "name": "Chair", "url": "http://x/chair.png"}])

    categories = parse_categories(document)

    assert [category.id for category in categories] == [3, 1]
    assert categories[0].url is None
    assert categories[1].url == "http://x/chair.png"


@pytest.mark.parametrize(
    "document",
    [
        '{"id": 1, "name": "Lamp"}',
        "not json",
        '[{"name": "Lamp"}]',
        '[{"id": "one", "name": "Lamp"}]',
        b"\xff\xfe",
        '[{"id": 1, "name": "Lamp"}, {"id": 1, "name": "Chair"}]',
    ],
)
def test_parse_categories_rejects_malformed_documents(document):
    with pytest.raises(ImportFormatError):
        parse_categories(document)


def test_export_keeps_only_succeeded_items():
    records = [
        ItemRecord(id=1, name="Lamp", prompt="p", url="http://x/lamp.png", status=ItemStatus.succeeded),
        ItemRecord(id=2, name="Chair", prompt="p", status=ItemStatus.failed, error=ItemError.upload_failed),
        ItemRecord(id=3, name="Desk", prompt="p"),
    ]

    document = export_results(records)

    assert json.loads(document) == [{"id": 1, "name": "Lamp", "url": "http://x/lamp.png"}]
    assert document.startswith('[\n  {\n    "id": 1')


def test_export_with_nothing_succeeded():
    with pytest.raises(NothingToExportError):
        export_results([ItemRecord(id=1, name="Lamp", prompt="p")])


def test_exported_document_reimports_as_succeeded(credential_store):
    exported = [
        ItemRecord(id=4, name="Lamp", prompt="p", url="http://x/lamp.png", status=ItemStatus.succeeded),
        ItemRecord(id=9, name="Desk", prompt="p", url="http://x/desk.png", status=ItemStatus.succeeded),
    ]
    queue = ProcessingQueue(FakeImageClient(), FakeStorageClient(), credential_store)

    records = asyncio.run(queue.load(parse_categories(export_results(exported))))

    assert [(record.id, record.name, record.url) for record in records] == [
        (4, "Lamp", "http://x/lamp.png"),
        (9, "Desk", "http://x/desk.png"),
    ]
    assert all(record.status is ItemStatus.succeeded for record in records)


def test_blank_url_is_not_treated_as_seeded():
    record = ItemRecord.from_category(InputCategory(id=1, name="Lamp", url="   "))

    assert record.status is ItemStatus.pending
    assert record.url == ""
