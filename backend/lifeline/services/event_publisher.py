"""
Real-time event publishing to logical rooms.

Rooms are ``user-{patient_id}`` (the patient's own session) and
``representative-{patient_id}`` (the patient's emergency contacts).
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Protocol

import structlog
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = structlog.get_logger(__name__)


def user_room(patient_id: str) -> str:
    return f"user-{patient_id}"


def representative_room(patient_id: str) -> str:
    return f"representative-{patient_id}"


class EventPublisher(Protocol):
    async def publish(self, room: str, event: str, payload: dict) -> int:
        """Deliver an event to a room; returns the number of live receivers."""
        ...


@dataclass
class PublishedEvent:
    room: str
    event: str
    payload: dict


@dataclass
class InMemoryEventPublisher:
    """Keeps every published event. Used for tests and headless deployments."""

    events: list[PublishedEvent] = field(default_factory=list)

    async def publish(self, room: str, event: str, payload: dict) -> int:
        self.events.append(PublishedEvent(room=room, event=event, payload=payload))
        return 0

    def for_room(self, room: str) -> list[PublishedEvent]:
        return [e for e in self.events if e.room == room]


class WebSocketHub:
    """Room-based fan-out over FastAPI WebSocket connections."""

    def __init__(self):
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def join(self, room: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._rooms[room].add(websocket)

    async def leave(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            members = self._rooms.get(room)
            if members:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    async def publish(self, room: str, event: str, payload: dict) -> int:
        async with self._lock:
            members = list(self._rooms.get(room, ()))

        if not members:
            logger.info("realtime_event_no_receivers", room=room, event_name=event)
            return 0

        message = {"event": event, "data": jsonable_encoder(payload)}
        results = await asyncio.gather(
            *(ws.send_json(message) for ws in members),
            return_exceptions=True,
        )

        delivered = 0
        for ws, result in zip(members, results):
            if isinstance(result, Exception):
                logger.warning("realtime_send_failed", room=room, event_name=event, error=str(result))
                await self.leave(room, ws)
            else:
                delivered += 1
        return delivered
