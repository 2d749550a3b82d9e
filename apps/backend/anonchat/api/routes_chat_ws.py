import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from anonchat.container import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat-ws"])

@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    container: AppContainer = websocket.app.state.container
    await websocket.accept()

    async with container.router.subscribe(websocket) as connection:
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                # text or binary frames both carry JSON envelopes
                raw = message.get("text") or message.get("bytes") or ""
                container.bridge.handle_event(connection, raw)
        except WebSocketDisconnect:
            logger.info(f"Connection {connection.handle} disconnected")
