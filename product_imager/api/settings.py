from fastapi import APIRouter, Depends

from product_imager.api.deps import get_processing_queue
from product_imager.api.security import require_token
from product_imager.models.schemas import AuthorizationRead, CredentialSet, CredentialSetRead
from product_imager.queue import ProcessingQueue

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(require_token)])


def _to_read(credentials: CredentialSet) -> CredentialSetRead:
    return CredentialSetRead(
        storage_url=credentials.storage_url,
        container=credentials.container,
        token_set=bool(credentials.token),
        configured=credentials.is_configured,
    )


@router.get("/storage", response_model=CredentialSetRead)
async def get_storage_settings(queue: ProcessingQueue = Depends(get_processing_queue)) -> CredentialSetRead:
    return _to_read(queue.credentials.current)


@router.put("/storage", response_model=CredentialSetRead)
async def update_storage_settings(
    payload: CredentialSet,
    queue: ProcessingQueue = Depends(get_processing_queue),
) -> CredentialSetRead:
    return _to_read(queue.credentials.save(payload))


@router.get("/authorization", response_model=AuthorizationRead)
async def get_authorization(queue: ProcessingQueue = Depends(get_processing_queue)) -> AuthorizationRead:
    return AuthorizationRead(authorization_selected=queue.authorization_selected)


@router.post("/authorization/request", response_model=AuthorizationRead)
async def request_authorization(queue: ProcessingQueue = Depends(get_processing_queue)) -> AuthorizationRead:
    return AuthorizationRead(authorization_selected=await queue.request_authorization())
