"""
Wire representations shared by the HTTP API and the WebSocket gateway.

Field names are snake_case in Python and camelCase on the wire.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from acto.core.memory.models import Chat, Identity, Message
from acto.core.utils.clock import isoformat


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class IdentityOut(CamelModel):
    """Own profile. Never carries the credential digest."""
    id: str
    handle: str
    contact_address: str
    display_name: str
    avatar: str = ""
    status_line: str = ""
    bio: str = ""
    is_online: bool = False
    last_seen_at: Optional[str] = None
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity, is_online: Optional[bool] = None) -> "IdentityOut":
        return cls(
            id=identity.id,
            handle=identity.handle,
            contact_address=identity.contact_address,
            display_name=identity.display_name,
            avatar=identity.avatar or "",
            status_line=identity.status_line or "",
            bio=identity.bio or "",
            is_online=identity.is_online if is_online is None else is_online,
            last_seen_at=isoformat(identity.last_seen_at),
            created_at=isoformat(identity.created_at),
        )


class UserSummary(CamelModel):
    """Another user's public card, as returned by search."""
    id: str
    handle: str
    display_name: str
    avatar: str = ""
    status_line: str = ""
    is_online: bool = False
    last_seen_at: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: Identity, is_online: bool) -> "UserSummary":
        return cls(
            id=identity.id,
            handle=identity.handle,
            display_name=identity.display_name,
            avatar=identity.avatar or "",
            status_line=identity.status_line or "",
            is_online=is_online,
            last_seen_at=isoformat(identity.last_seen_at),
        )


class MessageOut(CamelModel):
    id: str
    chat_id: str
    sender_id: str
    sender_handle: str
    sender_display_name: str
    content: str
    kind: str
    timestamp: str
    edited: bool = False

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            sender_handle=message.sender_handle,
            sender_display_name=message.sender_display_name,
            content=message.content,
            kind=message.kind,
            timestamp=isoformat(message.created_at),
            edited=bool(message.edited),
        )


class ChatOut(CamelModel):
    """
    A chat as seen by one viewer. For private chats name/avatar/isOnline/lastSeen
    describe the other participant at read time.
    """
    id: str
    kind: str
    participants: List[str]
    admins: List[str]
    owner: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    description: Optional[str] = None
    created_at: str
    last_message: Optional[MessageOut] = None
    unread_count: int = 0
    is_online: Optional[bool] = None
    last_seen: Optional[str] = None

    @classmethod
    def from_chat(cls, chat: Chat, last_message: Optional[Message] = None) -> "ChatOut":
        return cls(
            id=chat.id,
            kind=chat.kind,
            participants=chat.participant_ids,
            admins=chat.admin_ids,
            owner=chat.owner_id,
            name=chat.name,
            avatar=chat.avatar,
            description=chat.description,
            created_at=isoformat(chat.created_at),
            last_message=MessageOut.from_message(last_message) if last_message else None,
        )
