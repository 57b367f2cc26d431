from fastapi import APIRouter, Depends, HTTPException, status

from product_imager.api.deps import get_processing_queue
from product_imager.api.security import require_token
from product_imager.errors import (
    AuthorizationRequiredError,
    CredentialsNotConfiguredError,
    NothingToProcessError,
    NothingToRetryError,
)
from product_imager.models.schemas import QueueSnapshot
from product_imager.queue import ProcessingQueue

router = APIRouter(dependencies=[Depends(require_token)])


@router.get("", response_model=QueueSnapshot)
async def get_queue_state(queue: ProcessingQueue = Depends(get_processing_queue)) -> QueueSnapshot:
    return queue.snapshot()


@router.post("/start", response_model=QueueSnapshot)
async def start_processing(queue: ProcessingQueue = Depends(get_processing_queue)) -> QueueSnapshot:
    try:
        return await queue.start()
    except (CredentialsNotConfiguredError, AuthorizationRequiredError) as exc:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(exc)) from exc
    except NothingToProcessError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.post("/pause", response_model=QueueSnapshot)
async def pause_processing(queue: ProcessingQueue = Depends(get_processing_queue)) -> QueueSnapshot:
    return await queue.pause()


@router.post("/resume", response_model=QueueSnapshot)
async def resume_processing(queue: ProcessingQueue = Depends(get_processing_queue)) -> QueueSnapshot:
    return await queue.resume()


@router.post("/retry-failed", response_model=QueueSnapshot)
async def retry_failed(queue: ProcessingQueue = Depends(get_processing_queue)) -> QueueSnapshot:
    try:
        await queue.retry_failed()
    except (CredentialsNotConfiguredError, AuthorizationRequiredError) as exc:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(exc)) from exc
    except NothingToRetryError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return queue.snapshot()
