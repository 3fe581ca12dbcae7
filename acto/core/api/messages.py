"""
Message history and send endpoints.

Sending appends to the chat's log and pushes new-message to every
participant that currently has a live WebSocket.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from acto.core.memory.db import get_db
from acto.core.memory.models import MESSAGE_KIND_TEXT, Identity
from acto.core.memory.repository import ChatRepository
from acto.core.schemas import CamelModel, MessageOut
from acto.core.security.permissions import get_current_user
from acto.core.services.message_log import MessageLog
from acto.core.websocket import gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


class SendMessageRequest(CamelModel):
    content: str
    kind: Optional[str] = MESSAGE_KIND_TEXT


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    has_more: bool


class MessagesResponse(CamelModel):
    success: bool = True
    messages: List[MessageOut]
    pagination: Pagination


class SendMessageResponse(CamelModel):
    success: bool = True
    message: MessageOut


@router.get("/{chat_id}", response_model=MessagesResponse)
async def get_messages(
    chat_id: str,
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> MessagesResponse:
    """Page through history: page 1 is the newest `limit` messages, oldest first."""
    result = MessageLog.page(db, chat_id, user.id, page=page, limit=limit)
    return MessagesResponse(
        messages=[MessageOut.from_message(m) for m in result.messages],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            has_more=result.has_more,
        ),
    )


@router.post("/{chat_id}", response_model=SendMessageResponse)
async def send_message(
    chat_id: str,
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> SendMessageResponse:
    message = MessageLog.append(db, chat_id, user.id, request.content, request.kind or MESSAGE_KIND_TEXT)
    out = MessageOut.from_message(message)
    chat = ChatRepository.get_by_id(db, chat_id)
    gateway.deliver_message(chat.participant_ids, out)
    return SendMessageResponse(message=out)
