"""Parsing of the category input document and serialization of the results export."""

from __future__ import annotations

import json
from typing import Iterable, List, Union

from pydantic import TypeAdapter, ValidationError

from product_imager.errors import ImportFormatError, NothingToExportError
from product_imager.models.schemas import InputCategory, ItemRecord, ItemStatus, OutputCategory

EXPORT_FILENAME = "processed_products_with_images.json"

_categories_adapter = TypeAdapter(List[InputCategory])


def parse_categories(document: Union[str, bytes]) -> List[InputCategory]:
    """Parse a JSON array of `{id, name, url?}` objects.

    Raises:
        ImportFormatError: the document is not valid JSON, is not an array, or
            contains malformed or duplicate entries.
    """
    try:
        payload = json.loads(document)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ImportFormatError(f"Invalid JSON file: {exc}") from exc
    return validate_categories(payload)


def validate_categories(payload: object) -> List[InputCategory]:
    if not isinstance(payload, list):
        raise ImportFormatError("JSON file must contain an array of categories.")
    try:
        categories = _categories_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ImportFormatError(f"Invalid category entry: {exc.errors()[0]['msg']}") from exc

    seen = set()
    for category in categories:
        if category.id in seen:
            raise ImportFormatError(f"Duplicate category id {category.id}")
        seen.add(category.id)
    return categories


def collect_results(records: Iterable[ItemRecord]) -> List[OutputCategory]:
    return [
        OutputCategory(id=record.id, name=record.name, url=record.url)
        for record in records
        if record.status is ItemStatus.succeeded
    ]


def export_results(records: Iterable[ItemRecord]) -> str:
    """Serialize the succeeded records as a pretty-printed JSON array."""
    results = collect_results(records)
    if not results:
        raise NothingToExportError()
    return json.dumps([result.model_dump() for result in results], indent=2)
