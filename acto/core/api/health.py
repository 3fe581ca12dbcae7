"""
Health check and service info endpoints.

Returns service status, uptime, and live table/connection counts.
"""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from acto.core.memory.db import get_db
from acto.core.memory.repository import ChatRepository, IdentityRepository
from acto.core.observability import get_metrics
from acto.core.websocket import gateway

SERVICE_VERSION = "2.0.0"

_started_at = time.monotonic()

router = APIRouter(tags=["health"])


@router.get("/")
async def service_info(db: Session = Depends(get_db)):
    """
    Service banner with counts and the endpoint map.
    """
    return {
        "message": "Acto chat server is running",
        "version": SERVICE_VERSION,
        "users": IdentityRepository.count(db),
        "chats": ChatRepository.count(db),
        "onlineUsers": len(gateway.presence.online_ids()),
        "endpoints": {
            "auth": {
                "login": "POST /auth/login",
                "register": "POST /auth/register",
                "profile": "GET /auth/profile",
                "updateProfile": "PUT /auth/profile",
                "logout": "POST /auth/logout",
            },
            "chats": {
                "getChats": "GET /chats",
                "createChat": "POST /chats",
                "getMessages": "GET /messages/{chatId}",
                "sendMessage": "POST /messages/{chatId}",
            },
            "users": {
                "search": "GET /users/search",
            },
            "realtime": "WS /ws",
        },
    }


@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns:
        Service status, uptime in seconds, and live connection counts
    """
    return {
        "status": "ok",
        "service": "acto-chat",
        "uptime": int(time.monotonic() - _started_at),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "connections": gateway.connection_count(),
        "onlineUsers": len(gateway.presence.online_ids()),
        "gateway": get_metrics().get_stats(),
    }
