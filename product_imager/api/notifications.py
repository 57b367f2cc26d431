from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from product_imager.api.security import token_matches
from product_imager.notifications import NotificationManager
from product_imager.queue import ProcessingQueue

router = APIRouter()


async def _extract_token(websocket: WebSocket) -> Optional[str]:
    """Return the bearer token from header or query string, if provided."""
    auth_header = websocket.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return websocket.query_params.get("token")


@router.websocket("/ws/notifications")
async def notifications_endpoint(websocket: WebSocket) -> None:
    """Stream item and queue state changes to connected clients."""
    if not token_matches(await _extract_token(websocket)):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    manager: NotificationManager = websocket.app.state.notification_manager
    queue: ProcessingQueue = websocket.app.state.processing_queue
    greeting = [
        {"type": "welcome", "message": "notifications-ready"},
        {"type": "queue", "state": queue.snapshot().model_dump(mode="json")},
    ]
    await manager.connect(websocket, greeting)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception:
        await websocket.close(code=1011)
    finally:
        await manager.disconnect(websocket)
