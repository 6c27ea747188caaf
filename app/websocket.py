# app/websocket.py
"""
WebSocket transport for the live alert feed.
Each connection owns exactly one feed subscription, released when the socket closes.

Server → client:  {"type": "alerts", "alerts": [...]}   (newest first)
                  {"type": "pong"}
Client → server:  {"type": "ping"}
"""

import json
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from app.services.alert_feed import alert_feed
from app.utils.logger import get_logger

logger = get_logger(__name__)


async def alerts_websocket(websocket: WebSocket) -> None:
    await websocket.accept()
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    logger.info(f"🔌 Dashboard connected: {client}")

    async def push_snapshot(alerts: list) -> None:
        await websocket.send_json({"type": "alerts", "alerts": jsonable_encoder(alerts)})

    async with alert_feed.subscription(push_snapshot):
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
        except WebSocketDisconnect:
            logger.info(f"🔌 Dashboard disconnected: {client}")
