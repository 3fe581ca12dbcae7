"""
Transport liveness: periodic heartbeat frames and idle-connection close.

Only keepalive, no chat logic. Any frame received from the client counts as
activity; a connection silent for heartbeat_timeout is closed, which runs the
normal disconnect path in the route.
"""
import asyncio
import logging
from datetime import datetime, timezone

from acto.core.config import settings
from acto.core.websocket.connection import ClientConnection

logger = logging.getLogger(__name__)


def mark_activity(connection: ClientConnection) -> None:
    connection.last_activity = asyncio.get_running_loop().time()


async def run_heartbeat_task(connection: ClientConnection) -> None:
    """Every heartbeat_interval send a heartbeat; close the socket after heartbeat_timeout of silence."""
    loop = asyncio.get_running_loop()
    while not connection.is_closed:
        await asyncio.sleep(settings.heartbeat_interval)
        if connection.is_closed:
            return
        idle = loop.time() - connection.last_activity
        if idle >= settings.heartbeat_timeout:
            logger.info("WebSocket heartbeat timeout for connection %s (user_id=%s)", connection.id, connection.identity_id)
            try:
                await connection.websocket.close(code=4001, reason="heartbeat_timeout")
            except Exception as e:
                logger.debug("Close after heartbeat timeout failed for %s: %s", connection.id, e)
            return
        connection.send("heartbeat", {"ts": datetime.now(timezone.utc).isoformat()})
