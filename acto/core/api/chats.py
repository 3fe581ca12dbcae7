"""
Chat list and chat creation endpoints.
"""
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from acto.core.errors import InvalidArgument
from acto.core.memory.db import get_db
from acto.core.memory.models import CHAT_KIND_PRIVATE, Identity
from acto.core.memory.repository import IdentityRepository
from acto.core.schemas import CamelModel, ChatOut
from acto.core.security.permissions import get_current_user
from acto.core.services.chat_directory import ChatDirectory, build_chat_view
from acto.core.websocket import gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


class ChatCreateRequest(CamelModel):
    """Private chats need `handle`; groups need `name`."""
    kind: Literal["private", "group"]
    handle: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class ChatListResponse(CamelModel):
    success: bool = True
    chats: List[ChatOut]


class ChatCreateResponse(CamelModel):
    success: bool = True
    message: str
    created: bool
    chat: ChatOut


@router.get("", response_model=ChatListResponse)
async def list_chats(
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> ChatListResponse:
    """Chats the caller participates in, most recently active first."""
    chats = ChatDirectory.list_for_identity(db, user.id, gateway.presence.is_online)
    return ChatListResponse(chats=chats)


@router.post("", response_model=ChatCreateResponse)
async def create_chat(
    request: ChatCreateRequest,
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> ChatCreateResponse:
    """
    Create a private or group chat.

    A private chat with someone you already talk to returns the existing chat
    (created=false) and announces nothing.
    """
    if request.kind == CHAT_KIND_PRIVATE:
        if not request.handle:
            raise InvalidArgument("handle is required")
        chat, created = ChatDirectory.create_private(db, user.id, request.handle)
        message = "Private chat created" if created else "Chat already exists"
    else:
        chat = ChatDirectory.create_group(db, user.id, request.name or "", request.description)
        created = True
        message = "Group created"

    if created:
        gateway.announce_chat(db, chat)

    identities = IdentityRepository.get_by_ids(db, chat.participant_ids)
    view = build_chat_view(chat, user.id, gateway.presence.is_online, identities)
    return ChatCreateResponse(message=message, created=created, chat=view)
