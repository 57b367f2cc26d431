import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from product_imager.api import api_router
from product_imager.config import settings
from product_imager.db import init_db
from product_imager.notifications import NotificationManager
from product_imager.queue import ProcessingQueue, build_processing_queue

logger = logging.getLogger(__name__)

init_db()


def create_app(processing_queue: Optional[ProcessingQueue] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        notification_manager = NotificationManager()
        queue = processing_queue or build_processing_queue()
        if queue.publisher is None:
            queue.publisher = notification_manager.broadcast
        queue.credentials.load()
        authorized = await queue.refresh_authorization()
        logger.info(
            "Queue ready (storage configured=%s, authorization selected=%s)",
            queue.credentials.is_configured,
            authorized,
        )

        app.state.notification_manager = notification_manager
        app.state.processing_queue = queue
        try:
            yield
        finally:
            await queue.aclose()

    app = FastAPI(
        title="Product Image Generator Service",
        version="0.1.0",
        description="API for generating, uploading and exporting product category images.",
        lifespan=lifespan,
    )

    @app.get("/healthz", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(api_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://127.0.0.1:8081",
            "http://localhost:8081",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()


def run() -> None:
    import uvicorn

    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(
        "product_imager.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        factory=False,
    )


if __name__ == "__main__":
    run()
