# live_broadcast.py - who is connected, and fan-out of pixel events to them
import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class LiveSession:
    """One open WebSocket. Identity only, used for logging."""

    def __init__(self, ws, session_id: Optional[str] = None):
        self.ws = ws
        self.id = session_id or uuid.uuid4().hex

    async def send(self, message: Dict[str, Any]) -> None:
        await self.ws.send_text(json.dumps(message))

    def __repr__(self):
        return f"LiveSession({self.id})"


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, LiveSession] = {}

    def on_connect(self, session: LiveSession) -> None:
        self._sessions[session.id] = session
        logger.info("User connected via WebSocket: %s (%d live)", session.id, len(self._sessions))

    def on_disconnect(self, session: LiveSession) -> None:
        if self._sessions.pop(session.id, None) is not None:
            logger.info("User disconnected via WebSocket: %s (%d live)", session.id, len(self._sessions))

    def members(self) -> List[LiveSession]:
        return list(self._sessions.values())

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, session):
        return isinstance(session, LiveSession) and session.id in self._sessions


def pixel_update(x: int, y: int, color: str) -> Dict[str, Any]:
    return {"type": "pixelUpdate", "x": x, "y": y, "color": color}


class Broadcaster:
    """Best-effort publish to every session registered when publish() is called."""

    def __init__(self, registry: SessionRegistry, send_timeout: float = 2.0):
        self.registry = registry
        self.send_timeout = send_timeout

    async def publish(self, event: Dict[str, Any]) -> int:
        targets = self.registry.members()
        if not targets:
            return 0
        # a session that stops reading is dropped after send_timeout
        results = await asyncio.gather(
            *(asyncio.wait_for(s.send(event), self.send_timeout) for s in targets),
            return_exceptions=True,
        )
        delivered = 0
        for session, res in zip(targets, results):
            if isinstance(res, BaseException):
                logger.warning("Dropping session %s after failed send: %r", session.id, res)
                self.registry.on_disconnect(session)
            else:
                delivered += 1
        return delivered
