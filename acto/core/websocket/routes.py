"""
WebSocket route: /ws. Accept, register as Unauthenticated, then read JSON
frames until the client goes away. Authentication happens in-band via the
`authenticate` event.
"""
import asyncio
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect

from acto.core.config import settings
from acto.core.memory.db import db_session
from acto.core.websocket.gateway import EVENT_ERROR, gateway
from acto.core.websocket.heartbeat import mark_activity, run_heartbeat_task

logger = logging.getLogger(__name__)


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Accept WebSocket, run writer + heartbeat tasks, dispatch frames to the gateway."""
    await websocket.accept()
    connection = gateway.connect(websocket)
    mark_activity(connection)
    writer_task = asyncio.create_task(connection.run_writer())
    heartbeat_task = asyncio.create_task(run_heartbeat_task(connection))
    try:
        while True:
            try:
                message = await websocket.receive()
            except WebSocketDisconnect:
                break
            if message["type"] == "websocket.disconnect":
                break
            mark_activity(connection)
            raw = message.get("text")
            if raw is None:
                connection.send(EVENT_ERROR, {"success": False, "message": "Binary frames are not supported"})
                continue
            if len(raw) > settings.max_frame_size:
                connection.send(EVENT_ERROR, {"success": False, "message": "Frame too large"})
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                connection.send(EVENT_ERROR, {"success": False, "message": "Invalid JSON"})
                continue
            with db_session() as db:
                gateway.handle_event(db, connection, data)
    finally:
        with db_session() as db:
            gateway.disconnect(db, connection)
        connection.stop_writer()
        for task in (heartbeat_task, writer_task):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
