"""FastAPI routers for the Product Image Generator service."""

from fastapi import APIRouter

from .items import router as items_router
from .notifications import router as notifications_router
from .queue import router as queue_router
from .settings import router as settings_router

api_router = APIRouter()
api_router.include_router(items_router, prefix="/items", tags=["items"])
api_router.include_router(queue_router, prefix="/queue", tags=["queue"])
api_router.include_router(settings_router)
api_router.include_router(notifications_router, tags=["notifications"])
