"""Registry of connected client sessions."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Union

from ..common.exceptions import SessionNotFound
from .models import OutboundFrame

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Client connection states"""

    CONNECTING = auto()
    ACTIVE = auto()
    DISCONNECTED = auto()


class RenderLayout:
    """Outbound queue marker: render and send the client's current layout"""

    def __repr__(self) -> str:
        return "RenderLayout()"


class CloseSession:
    """Outbound queue marker: stop the egress task"""

    def __repr__(self) -> str:
        return "CloseSession()"


QueueItem = Union[OutboundFrame, RenderLayout, CloseSession]


@dataclass
class ClientSession:
    """One connected client's live state"""

    active_profile_name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: SessionState = SessionState.CONNECTING
    render_requests: int = 0
    outbound: "asyncio.Queue[QueueItem]" = field(default_factory=asyncio.Queue)


class ClientRegistry:
    """Lock-guarded map of session id to session

    The lock is only held for a lookup or a single-field mutation.
    """

    def __init__(self):
        self._sessions: Dict[str, ClientSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def register(self, session: ClientSession) -> None:
        async with self._lock:
            self._sessions[session.id] = session
        logger.info(f"Client {session.id} registered. Active clients: {len(self._sessions)}")

    async def unregister(self, session_id: str) -> Optional[ClientSession]:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.state = SessionState.DISCONNECTED
            logger.info(f"Client {session_id} removed. Active clients: {len(self._sessions)}")
        return session

    async def get(self, session_id: str) -> ClientSession:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"client session {session_id} not found")
        return session

    async def sessions(self) -> List[ClientSession]:
        async with self._lock:
            return list(self._sessions.values())

    async def active_profile(self, session_id: str) -> str:
        session = await self.get(session_id)
        return session.active_profile_name

    async def set_active_profile(self, session_id: str, profile_name: str) -> None:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(f"client session {session_id} not found")
            session.active_profile_name = profile_name
        logger.info(f"Client {session_id} switched to profile {profile_name}")

    async def enqueue(self, session_id: str, item: QueueItem) -> None:
        session = await self.get(session_id)
        session.outbound.put_nowait(item)

    async def request_render(self, session_id: str) -> None:
        """Ask the client's egress task to push a fresh layout"""
        session = await self.get(session_id)
        session.render_requests += 1
        session.outbound.put_nowait(RenderLayout())
