import logging

from fastapi import APIRouter, WebSocket

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["websocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Duplex channel for button presses and layout pushes"""
    controller = getattr(websocket.app.state, "system_controller", None)
    if controller is None or not websocket.app.state.startup_complete:
        logger.warning("Rejecting websocket, system not started")
        await websocket.close(code=1013)
        return

    await controller.sessions.handle_connection(websocket)
