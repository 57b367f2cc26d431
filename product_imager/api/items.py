from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from product_imager.api.deps import get_processing_queue
from product_imager.api.security import require_token
from product_imager.errors import (
    AuthorizationRequiredError,
    CredentialsNotConfiguredError,
    ImportFormatError,
    ItemBusyError,
    ItemNotFoundError,
    NothingToExportError,
)
from product_imager.models.schemas import ItemRecord, PromptUpdate
from product_imager.queue import ProcessingQueue
from product_imager.services.documents import EXPORT_FILENAME, export_results, parse_categories

router = APIRouter(dependencies=[Depends(require_token)])


@router.post("", response_model=List[ItemRecord])
async def upload_items(
    request: Request,
    queue: ProcessingQueue = Depends(get_processing_queue),
) -> List[ItemRecord]:
    """Replace the item list with the categories of an uploaded JSON document."""
    try:
        categories = parse_categories(await request.body())
        return await queue.load(categories)
    except ImportFormatError as exc:
        await queue.load([])
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=List[ItemRecord])
async def list_items(queue: ProcessingQueue = Depends(get_processing_queue)) -> List[ItemRecord]:
    return queue.items()


@router.get("/export")
async def export_items(queue: ProcessingQueue = Depends(get_processing_queue)) -> Response:
    try:
        document = export_results(queue.items())
    except NothingToExportError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(
        content=document,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/{item_id}", response_model=ItemRecord)
async def get_item(item_id: int, queue: ProcessingQueue = Depends(get_processing_queue)) -> ItemRecord:
    try:
        return queue.get(item_id)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.put("/{item_id}/prompt", response_model=ItemRecord)
async def update_prompt(
    item_id: int,
    payload: PromptUpdate,
    queue: ProcessingQueue = Depends(get_processing_queue),
) -> ItemRecord:
    try:
        return await queue.update_prompt(item_id, payload.prompt)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/{item_id}/regenerate", response_model=ItemRecord)
async def regenerate_item(
    item_id: int,
    payload: PromptUpdate,
    queue: ProcessingQueue = Depends(get_processing_queue),
) -> ItemRecord:
    try:
        return await queue.regenerate_one(item_id, payload.prompt)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ItemBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (CredentialsNotConfiguredError, AuthorizationRequiredError) as exc:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(exc)) from exc
