"""
Message log: append-only per-chat message sequences and backward paging.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import Session

from acto.core.config import settings
from acto.core.errors import InvalidArgument, NotFound
from acto.core.memory.models import (
    MESSAGE_KIND_SYSTEM,
    MESSAGE_KIND_TEXT,
    MESSAGE_KINDS,
    SYSTEM_SENDER_ID,
    Message,
)
from acto.core.memory.repository import ChatRepository, MessageRepository
from acto.core.services.chat_directory import ChatDirectory
from acto.core.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)


@dataclass
class MessagePage:
    """One page of a chat's history, oldest message first."""
    messages: List[Message] = field(default_factory=list)
    page: int = 1
    limit: int = 50
    total: int = 0
    has_more: bool = False


def page_bounds(total: int, page: int, limit: int):
    """
    Index range [start, stop) of `page` in an oldest-first sequence of `total`
    items, where page 1 is the newest `limit` items.

    Returns (start, stop, has_more); an empty range past the oldest item.
    """
    stop = total - (page - 1) * limit
    if stop <= 0:
        return 0, 0, False
    start = max(0, stop - limit)
    return start, stop, start > 0


class MessageLog:
    """Message operations. Every method takes the caller's session."""

    @staticmethod
    def append(
        db: Session,
        chat_id: str,
        sender_id: str,
        content: str,
        kind: str = MESSAGE_KIND_TEXT,
    ) -> Message:
        """
        Append a message and return it for fanout.

        Identity senders must participate in the chat (Forbidden otherwise,
        including unknown chats). The "system" sender posts into any existing
        chat and gets NotFound for unknown ones.
        """
        if sender_id == SYSTEM_SENDER_ID:
            if ChatRepository.get_by_id(db, chat_id) is None:
                raise NotFound("Chat not found")
            sender_handle, sender_name = SYSTEM_SENDER_ID, "System"
        else:
            ChatDirectory.assert_member(db, chat_id, sender_id)
            if kind == MESSAGE_KIND_SYSTEM:
                raise InvalidArgument("Message kind 'system' is reserved")
            sender = IdentityStore.get(db, sender_id)
            sender_handle, sender_name = sender.handle, sender.display_name

        content = (content or "").strip()
        if not content:
            raise InvalidArgument("Message cannot be empty")
        kind = kind or MESSAGE_KIND_TEXT
        if kind not in MESSAGE_KINDS:
            raise InvalidArgument(f"Unsupported message kind: {kind}")

        message = MessageRepository.create(
            db,
            chat_id=chat_id,
            sender_id=sender_id,
            sender_handle=sender_handle,
            sender_display_name=sender_name,
            content=content,
            kind=kind,
        )
        logger.info("Message sent in %s by %s: %s", chat_id, sender_handle, content[:50])
        return message

    @staticmethod
    def page(db: Session, chat_id: str, requester_id: str, page: int = 1, limit: int = None) -> MessagePage:
        """
        Page backwards through a chat's history.

        Page 1 holds the newest `limit` messages in chronological order, page 2
        the `limit` before those, and so on. has_more is True while older
        messages remain.
        """
        ChatDirectory.assert_member(db, chat_id, requester_id)
        if limit is None:
            limit = settings.default_page_limit
        if page < 1:
            raise InvalidArgument("page must be >= 1")
        if limit < 1:
            raise InvalidArgument("limit must be >= 1")
        limit = min(limit, settings.max_page_limit)

        total = MessageRepository.count_for_chat(db, chat_id)
        start, stop, has_more = page_bounds(total, page, limit)
        return MessagePage(
            messages=MessageRepository.get_range(db, chat_id, start, stop),
            page=page,
            limit=limit,
            total=total,
            has_more=has_more,
        )
