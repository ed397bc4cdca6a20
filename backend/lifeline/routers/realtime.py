from typing import Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from lifeline.auth import PatientPrincipal, decode_token

logger = structlog.get_logger(__name__)

router = APIRouter()

USER_ROOM_PREFIX = "user-"
REPRESENTATIVE_ROOM_PREFIX = "representative-"


def can_join(room: str, principal: Optional[PatientPrincipal]) -> bool:
    """
    Representative rooms are open to the patient's contacts, who hold no
    account. A patient's own room needs that patient's token or an admin's.
    """
    if room.startswith(REPRESENTATIVE_ROOM_PREFIX):
        return len(room) > len(REPRESENTATIVE_ROOM_PREFIX)
    if room.startswith(USER_ROOM_PREFIX):
        if principal is None:
            return False
        return principal.is_admin or room[len(USER_ROOM_PREFIX):] == principal.patient_id
    return False


def _principal(websocket: WebSocket) -> Optional[PatientPrincipal]:
    # Browsers cannot set headers on a WebSocket handshake, so ?token= is accepted too
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return decode_token(token) if token else None


@router.websocket("/ws/{room}")
async def subscribe(websocket: WebSocket, room: str):
    """Join a real-time room (``user-{id}`` or ``representative-{id}``) until disconnect."""
    if not can_join(room, _principal(websocket)):
        logger.warning("realtime_join_rejected", room=room)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    hub = websocket.app.state.services.publisher
    await hub.join(room, websocket)
    logger.info("realtime_joined", room=room)
    try:
        while True:
            # Inbound frames are ignored; the loop only detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await hub.leave(room, websocket)
        logger.info("realtime_left", room=room)
