"""Room-based message relay for live consultations.

Clients connect to ``/ws/chat/{room_id}?token=<access token>`` and send
``{"message": ...}`` frames, which are relayed to everyone else in the room.
"""
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Set

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import sessionmaker

from vidhanto.auth.dependencies import user_from_token
from vidhanto.database import get_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


class ConnectionManager:
    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    async def connect(self, room_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.rooms[room_id].add(websocket)

    def disconnect(self, room_id: str, websocket: WebSocket) -> None:
        members = self.rooms.get(room_id)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room_id]

    def room_size(self, room_id: str) -> int:
        return len(self.rooms.get(room_id, ()))

    async def broadcast(self, room_id: str, payload: dict, exclude: WebSocket = None) -> None:
        for member in list(self.rooms.get(room_id, ())):
            if member is exclude:
                continue
            await member.send_json(payload)


manager = ConnectionManager()


def message_event(room_id: str, sender_id: str, message) -> dict:
    return {
        "event": "receive-message",
        "room_id": room_id,
        "sender_id": sender_id,
        "message": message,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.websocket("/ws/chat/{room_id}")
async def chat_socket(
    websocket: WebSocket,
    room_id: str,
    token: str = None,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    # Only held while authenticating
    db = session_factory()
    try:
        user_id = user_from_token(token, db).id
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await manager.connect(room_id, websocket)
    logger.info("Client joined room", extra={"room_id": room_id, "user_id": user_id})
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                data = None
            if not isinstance(data, dict) or "message" not in data:
                await websocket.send_json({"event": "error", "detail": "Expected {\"message\": ...}"})
                continue
            await manager.broadcast(room_id, message_event(room_id, user_id, data["message"]), exclude=websocket)
    except WebSocketDisconnect:
        logger.info("Client left room", extra={"room_id": room_id, "user_id": user_id})
    finally:
        manager.disconnect(room_id, websocket)
