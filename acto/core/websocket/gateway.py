"""
Real-time gateway: per-connection state machine, chat rooms, and event fanout.

Connection lifecycle is Unauthenticated -> Authenticated(identity_id) -> Closed.
A connection whose identity has since been bound to a newer connection is
stale: its join/typing events are ignored.

All methods are synchronous. They run to completion on the event loop, so a
handler's mutations are never interleaved with another handler's; frames are
queued on each connection in the order the handlers produce them.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from acto.core.config import settings
from acto.core.errors import ChatServiceError, InvalidArgument
from acto.core.memory.models import Chat
from acto.core.memory.repository import ChatRepository, IdentityRepository
from acto.core.observability import record_authentication, record_connection, record_fanout
from acto.core.schemas import MessageOut
from acto.core.security.tokens import TokenManager
from acto.core.services.chat_directory import build_chat_view
from acto.core.services.identity_store import IdentityStore
from acto.core.websocket.connection import (
    CLOSED,
    UNAUTHENTICATED,
    Authenticated,
    ClientConnection,
)
from acto.core.websocket.presence import PresenceTracker

logger = logging.getLogger(__name__)

# Client -> server event types
EVENT_AUTHENTICATE = "authenticate"
EVENT_JOIN_CHAT = "join-chat"
EVENT_LEAVE_CHAT = "leave-chat"
EVENT_TYPING = "typing"
EVENT_HEARTBEAT_ACK = "heartbeat_ack"

# Server -> client event types
EVENT_AUTHENTICATED = "authenticated"
EVENT_USERS_ONLINE = "users-online"
EVENT_CHAT_CREATED = "chat-created"
EVENT_NEW_MESSAGE = "new-message"
EVENT_USER_TYPING = "user-typing"
EVENT_ERROR = "error"


class Gateway:
    """Binds WebSocket connections to identities and routes chat events between them."""

    def __init__(self, presence: Optional[PresenceTracker] = None) -> None:
        self.presence = presence or PresenceTracker()
        self._connections: Dict[str, ClientConnection] = {}  # every open connection
        self._rooms: Dict[str, Set[ClientConnection]] = defaultdict(set)  # chat_id -> subscribers

    # Connection lifecycle

    def connect(self, websocket: Any) -> ClientConnection:
        """Register a freshly accepted WebSocket in the Unauthenticated state."""
        connection = ClientConnection(websocket)
        self._connections[connection.id] = connection
        record_connection(opened=True)
        logger.info("Socket connected: %s", connection.id)
        return connection

    def authenticate(self, db: Session, connection: ClientConnection, token: Optional[str]) -> bool:
        """
        Prove the connection's identity with an access token.

        On success the connection is bound in the presence tracker, the
        identity is marked online, the caller gets a success ack and everyone
        gets the new online set. On failure the caller gets a failure ack and
        the connection keeps its current state.
        """
        if connection.is_closed:
            return False
        identity_id = TokenManager.identity_id_from_token(token) if token else None
        if identity_id is None:
            return self._reject(connection, "Invalid token")
        identity = IdentityRepository.get_by_id(db, identity_id)
        if identity is None:
            return self._reject(connection, "User not found")

        previous = connection.identity_id
        if previous is not None and previous != identity.id:
            self._release(db, previous, connection)

        superseded = self.presence.bind(identity.id, connection)
        if superseded is not None:
            self._drop_rooms(superseded)
        connection.state = Authenticated(identity.id)
        IdentityStore.set_presence(db, identity.id, True)
        record_authentication(success=True)

        connection.send(EVENT_AUTHENTICATED, {"success": True})
        self.broadcast_online()
        logger.info("Socket authenticated: %s (@%s) on %s", identity.display_name, identity.handle, connection.id)
        return True

    def disconnect(self, db: Session, connection: ClientConnection) -> None:
        """Close the connection; release its presence binding if it still holds it."""
        identity_id = connection.identity_id
        connection.state = CLOSED
        self._connections.pop(connection.id, None)
        self._drop_rooms(connection)
        record_connection(opened=False)
        if identity_id is not None and self._release(db, identity_id, connection):
            self.broadcast_online()
        logger.info("Socket disconnected: %s (user_id=%s)", connection.id, identity_id)

    def sign_out(self, db: Session, identity_id: str) -> None:
        """
        Log an identity out: its live connection (if any) drops back to
        Unauthenticated and the identity is marked offline.
        """
        connection = self.presence.connection_for(identity_id)
        released = False
        if connection is not None and self.presence.unbind(identity_id, connection):
            connection.state = UNAUTHENTICATED
            self._drop_rooms(connection)
            connection.send(EVENT_AUTHENTICATED, {"success": False, "message": "Logged out"})
            released = True
        IdentityStore.set_presence(db, identity_id, False)
        if released:
            self.broadcast_online()

    def active_identity(self, connection: ClientConnection) -> Optional[str]:
        """Identity of an authenticated, non-stale connection; None otherwise."""
        identity_id = connection.identity_id
        if identity_id is None or self.presence.resolve(connection) != identity_id:
            return None
        return identity_id

    # Rooms

    def join_chat(self, db: Session, connection: ClientConnection, chat_id: str) -> bool:
        """Subscribe to a chat room. No-op unless the connection's identity participates."""
        identity_id = self.active_identity(connection)
        if identity_id is None:
            logger.debug("Ignoring join-chat from unauthenticated or stale connection %s", connection.id)
            return False
        if not ChatRepository.is_member(db, chat_id, identity_id):
            logger.debug("Ignoring join-chat for %s by non-participant %s", chat_id, identity_id)
            return False
        self._rooms[chat_id].add(connection)
        connection.rooms.add(chat_id)
        logger.info("User %s joined chat %s", identity_id, chat_id)
        return True

    def leave_chat(self, connection: ClientConnection, chat_id: str) -> None:
        """Unsubscribe from a chat room. Always allowed; idempotent."""
        subscribers = self._rooms.get(chat_id)
        if subscribers is not None:
            subscribers.discard(connection)
            if not subscribers:
                del self._rooms[chat_id]
        if chat_id in connection.rooms:
            connection.rooms.discard(chat_id)
            logger.info("User %s left chat %s", connection.identity_id, chat_id)

    def room_members(self, chat_id: str) -> List[ClientConnection]:
        return list(self._rooms.get(chat_id, ()))

    def typing(self, db: Session, connection: ClientConnection, chat_id: str, is_typing: bool) -> int:
        """Relay a typing indicator to the other subscribers of the chat room."""
        identity_id = self.active_identity(connection)
        if identity_id is None or not ChatRepository.is_member(db, chat_id, identity_id):
            return 0
        identity = IdentityRepository.get_by_id(db, identity_id)
        if identity is None:
            return 0
        payload = {
            "userId": identity.id,
            "handle": identity.handle,
            "chatId": chat_id,
            "isTyping": bool(is_typing),
        }
        relayed = 0
        for other in self.room_members(chat_id):
            if other is connection:
                continue
            if other.send(EVENT_USER_TYPING, payload):
                relayed += 1
        return relayed

    # Fanout

    def deliver_message(self, participant_ids: Iterable[str], message: MessageOut) -> int:
        """
        Push new-message to every participant with a live connection,
        regardless of room subscription. Offline participants are skipped.
        """
        payload = {"message": message.to_wire()}
        delivered = skipped = 0
        for participant_id in participant_ids:
            connection = self.presence.connection_for(participant_id)
            if connection is not None and connection.send(EVENT_NEW_MESSAGE, payload):
                delivered += 1
            else:
                skipped += 1
        record_fanout(delivered, skipped)
        return delivered

    def announce_chat(self, db: Session, chat: Chat) -> int:
        """
        Send chat-created for a new chat, rendered for each recipient.

        Recipients are the chat's connected participants, or every open
        connection when broadcast_chat_created_to_all is set.
        """
        if settings.broadcast_chat_created_to_all:
            recipients = [(c, self.active_identity(c)) for c in list(self._connections.values())]
        else:
            recipients = []
            for participant_id in chat.participant_ids:
                connection = self.presence.connection_for(participant_id)
                if connection is not None:
                    recipients.append((connection, participant_id))
        identities = IdentityRepository.get_by_ids(db, chat.participant_ids)
        sent = 0
        for connection, viewer_id in recipients:
            view = build_chat_view(chat, viewer_id, self.presence.is_online, identities)
            if connection.send(EVENT_CHAT_CREATED, {"chat": view.to_wire()}):
                sent += 1
        return sent

    def broadcast(self, event_type: str, payload: Dict[str, Any]) -> int:
        """Send an event to every open connection, authenticated or not."""
        sent = 0
        for connection in list(self._connections.values()):
            if connection.send(event_type, payload):
                sent += 1
        return sent

    def broadcast_online(self) -> int:
        """Push the full online set. Always the whole set, never a delta."""
        return self.broadcast(EVENT_USERS_ONLINE, {"userIds": self.presence.online_ids()})

    # Dispatch

    def handle_event(self, db: Session, connection: ClientConnection, data: Any) -> None:
        """
        Dispatch one client frame. Errors become an `error` frame to the
        sender; the connection stays open.
        """
        try:
            if not isinstance(data, dict):
                raise InvalidArgument("Frame must be a JSON object")
            event_type = data.get("type") or ""
            if event_type == EVENT_AUTHENTICATE:
                self.authenticate(db, connection, data.get("token"))
            elif event_type == EVENT_JOIN_CHAT:
                self.join_chat(db, connection, _chat_id(data))
            elif event_type == EVENT_LEAVE_CHAT:
                self.leave_chat(connection, _chat_id(data))
            elif event_type == EVENT_TYPING:
                self.typing(db, connection, _chat_id(data), data.get("isTyping") is True)
            elif event_type == EVENT_HEARTBEAT_ACK:
                return
            else:
                raise InvalidArgument(f"Unknown event type: {event_type or '<missing>'}")
        except ChatServiceError as e:
            connection.send(EVENT_ERROR, {"success": False, "message": e.message, "code": e.code})
        except Exception as e:
            logger.error("Unhandled error in %s handler: %s", connection.id, e, exc_info=True)
            connection.send(EVENT_ERROR, {"success": False, "message": "Internal server error", "code": "internal"})

    def connection_count(self) -> int:
        return len(self._connections)

    def reset(self) -> None:
        """Forget every connection, room and binding."""
        self._connections.clear()
        self._rooms.clear()
        self.presence.clear()

    # Internals

    def _reject(self, connection: ClientConnection, message: str) -> bool:
        record_authentication(success=False)
        connection.send(EVENT_AUTHENTICATED, {"success": False, "message": message})
        logger.info("Socket authentication failed on %s: %s", connection.id, message)
        return False

    def _release(self, db: Session, identity_id: str, connection: ClientConnection) -> bool:
        """Unbind identity from connection if still bound there; mark it offline. Returns True if unbound."""
        if not self.presence.unbind(identity_id, connection):
            return False
        IdentityStore.set_presence(db, identity_id, False)
        return True

    def _drop_rooms(self, connection: ClientConnection) -> None:
        for chat_id in list(connection.rooms):
            self.leave_chat(connection, chat_id)


def _chat_id(data: Dict[str, Any]) -> str:
    chat_id = data.get("chatId")
    if not isinstance(chat_id, str) or not chat_id:
        raise InvalidArgument("chatId is required")
    return chat_id


gateway = Gateway()
