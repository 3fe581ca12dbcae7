"""
Repository layer for database operations.

Narrow per-table interfaces over the SQLAlchemy models. Services call these
instead of querying the session directly, so the backing store can change
without touching callers.
"""
from typing import Optional, List, Dict, Any
import logging
import uuid
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_

from acto.core.memory.models import (
    Identity,
    Chat,
    ChatMember,
    Message,
    CHAT_KIND_PRIVATE,
    CHAT_KIND_GROUP,
    MESSAGE_KIND_SYSTEM,
    MESSAGE_KIND_TEXT,
    SYSTEM_SENDER_ID,
)
from acto.core.utils.clock import utcnow


logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def require_active_session(db: Session) -> None:
    """Raise if session is closed; prevents use-after-close."""
    if not db.is_active:
        raise RuntimeError(
            "Session already closed; do not use a request session outside request scope."
        )


class IdentityRepository:
    """Repository for identity operations."""

    @staticmethod
    def create(
        db: Session,
        handle: str,
        contact_address: str,
        display_name: str,
        credential_digest: str,
        identity_id: Optional[str] = None,
        avatar: str = "",
        status_line: str = "",
        bio: str = "",
    ) -> Identity:
        """Create a new identity. Handle and contact address are stored lower-cased."""
        require_active_session(db)
        now = utcnow()
        identity = Identity(
            id=identity_id or new_id(),
            handle=handle.lower(),
            contact_address=contact_address.lower(),
            display_name=display_name,
            avatar=avatar,
            status_line=status_line,
            bio=bio,
            credential_digest=credential_digest,
            is_online=False,
            last_seen_at=now,
            created_at=now,
        )
        db.add(identity)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        return identity

    @staticmethod
    def get_by_id(db: Session, identity_id: str) -> Optional[Identity]:
        """Get identity by ID."""
        return db.query(Identity).filter(Identity.id == identity_id).first()

    @staticmethod
    def get_by_ids(db: Session, identity_ids: List[str]) -> Dict[str, Identity]:
        """Get identities keyed by ID."""
        if not identity_ids:
            return {}
        rows = db.query(Identity).filter(Identity.id.in_(identity_ids)).all()
        return {row.id: row for row in rows}

    @staticmethod
    def get_by_handle(db: Session, handle: str) -> Optional[Identity]:
        """Get identity by handle (case-insensitive)."""
        return db.query(Identity).filter(Identity.handle == handle.lower()).first()

    @staticmethod
    def find_conflicting(db: Session, handle: str, contact_address: str) -> Optional[Identity]:
        """Return an identity that already uses the handle or contact address, if any."""
        return (
            db.query(Identity)
            .filter(
                or_(
                    Identity.handle == handle.lower(),
                    Identity.contact_address == contact_address.lower(),
                )
            )
            .first()
        )

    @staticmethod
    def update_fields(db: Session, identity: Identity, fields: Dict[str, Any]) -> Identity:
        """Assign the given column values and commit."""
        require_active_session(db)
        for key, value in fields.items():
            setattr(identity, key, value)
        db.commit()
        return identity

    @staticmethod
    def set_presence(db: Session, identity_id: str, online: bool) -> Optional[Identity]:
        """Set is_online and stamp last_seen_at."""
        require_active_session(db)
        identity = IdentityRepository.get_by_id(db, identity_id)
        if identity:
            identity.is_online = online
            identity.last_seen_at = utcnow()
            db.commit()
        return identity

    @staticmethod
    def update_last_seen(db: Session, identity_id: str) -> None:
        """Stamp last_seen_at without changing online state."""
        require_active_session(db)
        identity = IdentityRepository.get_by_id(db, identity_id)
        if identity:
            identity.last_seen_at = utcnow()
            db.commit()

    @staticmethod
    def search(db: Session, query: str, exclude_id: str, limit: int = 10) -> List[Identity]:
        """Case-insensitive substring match on handle or display name, excluding one identity."""
        needle = query.lower()
        return (
            db.query(Identity)
            .filter(
                Identity.id != exclude_id,
                or_(
                    func.lower(Identity.handle).contains(needle, autoescape=True),
                    func.lower(Identity.display_name).contains(needle, autoescape=True),
                ),
            )
            .order_by(Identity.created_at.asc(), Identity.handle.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count(db: Session) -> int:
        return db.query(func.count(Identity.id)).scalar() or 0


class ChatRepository:
    """Repository for chat and membership operations."""

    @staticmethod
    def pair_key(identity_a: str, identity_b: str) -> str:
        """Canonical key for an unordered identity pair."""
        lower, higher = sorted((identity_a, identity_b))
        return f"{lower}:{higher}"

    @staticmethod
    def get_by_id(db: Session, chat_id: str) -> Optional[Chat]:
        """Get chat by ID with members loaded."""
        return (
            db.query(Chat)
            .options(selectinload(Chat.members))
            .filter(Chat.id == chat_id)
            .first()
        )

    @staticmethod
    def get_private_by_pair(db: Session, identity_a: str, identity_b: str) -> Optional[Chat]:
        """Get the private chat between two identities, in either order."""
        key = ChatRepository.pair_key(identity_a, identity_b)
        return (
            db.query(Chat)
            .options(selectinload(Chat.members))
            .filter(Chat.kind == CHAT_KIND_PRIVATE, Chat.pair_key == key)
            .first()
        )

    @staticmethod
    def create_private(db: Session, requester_id: str, target_id: str) -> Chat:
        """Create a private chat; the unique pair key rejects a second one for the same pair."""
        require_active_session(db)
        chat = Chat(
            id=new_id(),
            kind=CHAT_KIND_PRIVATE,
            pair_key=ChatRepository.pair_key(requester_id, target_id),
            owner_id=None,
            created_at=utcnow(),
        )
        chat.members = [
            ChatMember(identity_id=requester_id, position=0, is_admin=False),
            ChatMember(identity_id=target_id, position=1, is_admin=False),
        ]
        db.add(chat)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        return chat

    @staticmethod
    def create_group(
        db: Session,
        owner: Identity,
        name: str,
        description: str,
        avatar: str,
        announcement: str,
    ) -> Chat:
        """
        Create a group chat owned by `owner` together with its creation
        announcement. Chat, membership and announcement commit together.
        """
        require_active_session(db)
        now = utcnow()
        chat = Chat(
            id=new_id(),
            kind=CHAT_KIND_GROUP,
            pair_key=None,
            owner_id=owner.id,
            name=name,
            avatar=avatar,
            description=description,
            created_at=now,
        )
        chat.members = [ChatMember(identity_id=owner.id, position=0, is_admin=True)]
        db.add(chat)
        db.add(
            Message(
                id=new_id(),
                chat=chat,
                sender_id=SYSTEM_SENDER_ID,
                sender_handle=SYSTEM_SENDER_ID,
                sender_display_name="System",
                content=announcement,
                kind=MESSAGE_KIND_SYSTEM,
                created_at=now,
            )
        )
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        return chat

    @staticmethod
    def list_for_identity(db: Session, identity_id: str) -> List[Chat]:
        """All chats the identity participates in, oldest first."""
        return (
            db.query(Chat)
            .options(selectinload(Chat.members))
            .join(ChatMember, ChatMember.chat_id == Chat.id)
            .filter(ChatMember.identity_id == identity_id)
            .order_by(Chat.created_at.asc(), Chat.id.asc())
            .all()
        )

    @staticmethod
    def is_member(db: Session, chat_id: str, identity_id: str) -> bool:
        """True if identity participates in chat. False for unknown chats."""
        return (
            db.query(ChatMember)
            .filter(ChatMember.chat_id == chat_id, ChatMember.identity_id == identity_id)
            .first()
            is not None
        )

    @staticmethod
    def count(db: Session) -> int:
        return db.query(func.count(Chat.id)).scalar() or 0


class MessageRepository:
    """Repository for the per-chat append-only message log."""

    @staticmethod
    def create(
        db: Session,
        chat_id: str,
        sender_id: str,
        sender_handle: str,
        sender_display_name: str,
        content: str,
        kind: str = MESSAGE_KIND_TEXT,
    ) -> Message:
        """Append a message to the chat."""
        require_active_session(db)
        message = Message(
            id=new_id(),
            chat_id=chat_id,
            sender_id=sender_id,
            sender_handle=sender_handle,
            sender_display_name=sender_display_name,
            content=content,
            kind=kind,
            created_at=utcnow(),
            edited=False,
        )
        db.add(message)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        return message

    @staticmethod
    def count_for_chat(db: Session, chat_id: str) -> int:
        return db.query(func.count(Message.seq)).filter(Message.chat_id == chat_id).scalar() or 0

    @staticmethod
    def get_range(db: Session, chat_id: str, start: int, stop: int) -> List[Message]:
        """
        Messages at positions [start, stop) of the chat's oldest-first sequence.
        """
        if stop <= start:
            return []
        return (
            db.query(Message)
            .filter(Message.chat_id == chat_id)
            .order_by(Message.seq.asc())
            .offset(start)
            .limit(stop - start)
            .all()
        )

    @staticmethod
    def get_last_for_chats(db: Session, chat_ids: List[str]) -> Dict[str, Message]:
        """Newest message of each chat, keyed by chat ID. Chats without messages are absent."""
        if not chat_ids:
            return {}
        newest = (
            db.query(Message.chat_id, func.max(Message.seq).label("max_seq"))
            .filter(Message.chat_id.in_(chat_ids))
            .group_by(Message.chat_id)
            .subquery()
        )
        rows = (
            db.query(Message)
            .join(newest, Message.seq == newest.c.max_seq)
            .all()
        )
        return {row.chat_id: row for row in rows}

    @staticmethod
    def count(db: Session) -> int:
        return db.query(func.count(Message.seq)).scalar() or 0
