"""
One client WebSocket: its gateway state, room subscriptions, and an outbound queue.

Frames are queued synchronously and written by a single writer task, so the
order in which handlers call send() is the order the client receives them.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Authenticated:
    identity_id: str


@dataclass(frozen=True)
class Closed:
    pass


ConnectionState = Union[Unauthenticated, Authenticated, Closed]

UNAUTHENTICATED = Unauthenticated()
CLOSED = Closed()

_STOP = object()


class ClientConnection:
    """Wraps a WebSocket; identified by a random id, never by the identity it carries."""

    def __init__(self, websocket: Any) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.websocket = websocket
        self.state: ConnectionState = UNAUTHENTICATED
        self.rooms: Set[str] = set()
        self.last_activity: float = 0.0
        self._outbox: "asyncio.Queue[Any]" = asyncio.Queue()

    @property
    def identity_id(self) -> Optional[str]:
        """Identity this connection authenticated as, if any (may be stale)."""
        if isinstance(self.state, Authenticated):
            return self.state.identity_id
        return None

    @property
    def is_closed(self) -> bool:
        return isinstance(self.state, Closed)

    def send(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """Queue one event frame. Returns False if the connection is closed."""
        if self.is_closed:
            return False
        self._outbox.put_nowait({"type": event_type, **payload})
        return True

    def stop_writer(self) -> None:
        self._outbox.put_nowait(_STOP)

    async def run_writer(self) -> None:
        """Drain the outbound queue into the WebSocket until stopped or a send fails."""
        while True:
            frame = await self._outbox.get()
            if frame is _STOP:
                return
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                logger.warning("Send to connection %s failed: %s", self.id, e)
                return

    def __repr__(self) -> str:
        return f"<ClientConnection {self.id} {self.state}>"
