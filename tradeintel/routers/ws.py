"""WebSocket endpoint pushing listing and notification events to the UI."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from jose import JWTError

from tradeintel.config import get_settings
from tradeintel.dependencies import decode_access_token
from tradeintel.services.ws_manager import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSE_MISSING_TOKEN = 4001
CLOSE_BAD_TOKEN = 4003


@router.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket):
    """Stream ``new_listing``, ``new_review_item`` and ``notification_match`` events.

    Authenticate with ``?token=<access token>``. After the handshake the
    server sends ``{"type": "connected"}``. Clients may send
    ``{"type": "ping"}`` as a keepalive; anything else is answered with an
    error frame and otherwise ignored.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=CLOSE_MISSING_TOKEN, reason="Missing token")
        return

    try:
        user_id = decode_access_token(token, get_settings())
    except (JWTError, ValueError) as e:
        logger.warning("WS auth failed: %s", e)
        await websocket.close(code=CLOSE_BAD_TOKEN, reason="Authentication failed")
        return

    await ws_manager.connect(user_id, websocket)
    try:
        await websocket.send_json({"type": "connected", "user_id": str(user_id)})
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                frame = None
            if isinstance(frame, dict) and frame.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "detail": "Unsupported frame"})
    except WebSocketDisconnect:
        logger.debug("WS closed for user=%s", user_id)
    except Exception:
        logger.warning("WS error for user=%s", user_id, exc_info=True)
    finally:
        ws_manager.disconnect(user_id, websocket)
