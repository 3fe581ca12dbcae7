"""
Presence tracker: maps identity_id to its single live connection.

The online set is exactly the key set of this mapping. Binding an identity
that is already bound replaces the old connection; unbinding only succeeds for
the connection that is currently bound, so a late disconnect from a superseded
connection cannot knock out the newer one.
"""
import logging
from typing import Dict, List, Optional

from acto.core.websocket.connection import ClientConnection

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Identity <-> connection binding, at most one connection per identity."""

    def __init__(self) -> None:
        self._connections: Dict[str, ClientConnection] = {}  # identity_id -> connection
        self._identities: Dict[str, str] = {}  # connection id -> identity_id

    def bind(self, identity_id: str, connection: ClientConnection) -> Optional[ClientConnection]:
        """
        Bind identity to connection, replacing any previous binding.

        Returns the superseded connection, if a different one was bound.
        A connection carries at most one identity; binding it again moves it.
        """
        previous_identity = self._identities.get(connection.id)
        if previous_identity is not None and previous_identity != identity_id:
            self.unbind(previous_identity, connection)

        old = self._connections.get(identity_id)
        if old is not None and old is not connection:
            self._identities.pop(old.id, None)
        self._connections[identity_id] = connection
        self._identities[connection.id] = identity_id
        logger.info("Connection %s bound to user_id=%s", connection.id, identity_id)
        if old is not None and old is not connection:
            logger.info("Connection %s superseded for user_id=%s", old.id, identity_id)
            return old
        return None

    def unbind(self, identity_id: str, connection: ClientConnection) -> bool:
        """Remove the binding if `connection` is the one bound. Returns True if removed."""
        if self._connections.get(identity_id) is not connection:
            return False
        del self._connections[identity_id]
        self._identities.pop(connection.id, None)
        logger.info("Connection %s unbound from user_id=%s", connection.id, identity_id)
        return True

    def is_online(self, identity_id: str) -> bool:
        return identity_id in self._connections

    def resolve(self, connection: ClientConnection) -> Optional[str]:
        """Identity currently bound to this connection, or None."""
        return self._identities.get(connection.id)

    def connection_for(self, identity_id: str) -> Optional[ClientConnection]:
        return self._connections.get(identity_id)

    def online_ids(self) -> List[str]:
        """Online identities in binding order."""
        return list(self._connections.keys())

    def clear(self) -> None:
        self._connections.clear()
        self._identities.clear()
