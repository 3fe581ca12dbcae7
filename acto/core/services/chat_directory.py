"""
Chat directory: private/group chat creation, membership guard, and per-viewer chat lists.

Private chats are unique per unordered identity pair. Creating one that
already exists returns the existing chat instead of failing.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from acto.core.errors import Forbidden, InvalidArgument
from acto.core.memory.models import CHAT_KIND_PRIVATE, Chat, Identity, Message
from acto.core.memory.repository import ChatRepository, IdentityRepository, MessageRepository
from acto.core.schemas import ChatOut
from acto.core.services.identity_store import IdentityStore
from acto.core.utils.clock import isoformat

logger = logging.getLogger(__name__)

DEFAULT_GROUP_AVATAR = "👥"

OnlineCheck = Callable[[str], bool]


def build_chat_view(
    chat: Chat,
    viewer_id: Optional[str],
    is_online: OnlineCheck,
    identities: Dict[str, Identity],
    last_message: Optional[Message] = None,
) -> ChatOut:
    """
    Render a chat for one viewer. A private chat takes its display fields from
    the participant who is not the viewer.
    """
    view = ChatOut.from_chat(chat, last_message)
    if chat.kind == CHAT_KIND_PRIVATE and viewer_id is not None:
        other_id = next((p for p in chat.participant_ids if p != viewer_id), None)
        other = identities.get(other_id) if other_id else None
        if other is not None:
            view.name = other.display_name
            view.avatar = other.avatar or ""
            view.is_online = is_online(other.id)
            view.last_seen = isoformat(other.last_seen_at)
    return view


class ChatDirectory:
    """Chat-level operations. Every method takes the caller's session."""

    @staticmethod
    def list_for_identity(db: Session, identity_id: str, is_online: OnlineCheck) -> List[ChatOut]:
        """
        Chats the identity participates in, most recently active first.

        Activity is the last message's timestamp, or the chat's creation time
        when it has no messages. Equal keys keep a stable order.
        """
        chats = ChatRepository.list_for_identity(db, identity_id)
        last_messages = MessageRepository.get_last_for_chats(db, [c.id for c in chats])
        others = {
            p for c in chats if c.kind == CHAT_KIND_PRIVATE for p in c.participant_ids if p != identity_id
        }
        identities = IdentityRepository.get_by_ids(db, list(others))

        def activity(chat: Chat):
            last = last_messages.get(chat.id)
            return last.created_at if last else chat.created_at

        ordered = sorted(chats, key=activity, reverse=True)
        return [
            build_chat_view(chat, identity_id, is_online, identities, last_messages.get(chat.id))
            for chat in ordered
        ]

    @staticmethod
    def create_private(db: Session, requester_id: str, target_handle: str) -> Tuple[Chat, bool]:
        """
        Get or create the private chat between the requester and `target_handle`.

        Returns:
            (chat, created) - created is False when the pair already had a chat

        Raises:
            InvalidArgument: no handle given, or the handle is the requester's own
            NotFound: no identity with that handle
        """
        if not (target_handle or "").strip():
            raise InvalidArgument("handle is required")
        requester = IdentityStore.get(db, requester_id)
        target = IdentityStore.get_by_handle(db, target_handle.strip())
        if target.id == requester.id:
            raise InvalidArgument("Cannot create a chat with yourself")

        existing = ChatRepository.get_private_by_pair(db, requester.id, target.id)
        if existing is not None:
            logger.debug("Private chat %s already exists for %s/%s", existing.id, requester.id, target.id)
            return existing, False

        try:
            chat = ChatRepository.create_private(db, requester.id, target.id)
        except IntegrityError:
            # Pair key is unique; someone else created it first.
            existing = ChatRepository.get_private_by_pair(db, requester.id, target.id)
            if existing is None:
                raise
            return existing, False

        logger.info("Private chat created between %s and %s", requester.handle, target.handle)
        return chat, True

    @staticmethod
    def create_group(db: Session, requester_id: str, name: str, description: Optional[str] = None) -> Chat:
        """
        Create a group owned by the requester, who is its only participant and
        admin. The creation announcement is the group's first message.
        """
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Group name is required")
        owner = IdentityStore.get(db, requester_id)
        chat = ChatRepository.create_group(
            db,
            owner=owner,
            name=name,
            description=(description or "").strip(),
            avatar=DEFAULT_GROUP_AVATAR,
            announcement=f'Group "{name}" created',
        )
        logger.info("Group created: %s by %s", name, owner.handle)
        return chat

    @staticmethod
    def assert_member(db: Session, chat_id: str, identity_id: str) -> None:
        """Raise Forbidden unless identity participates in chat. Unknown chats are Forbidden too."""
        if not chat_id or not ChatRepository.is_member(db, chat_id, identity_id):
            raise Forbidden()
