"""
SQLAlchemy models for the Acto chat database.

Defines the schema for identities, chats, chat membership, and messages.
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean,
    DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship, declarative_base

from acto.core.utils.clock import utcnow

Base = declarative_base()

SYSTEM_SENDER_ID = "system"

CHAT_KIND_PRIVATE = "private"
CHAT_KIND_GROUP = "group"

MESSAGE_KIND_TEXT = "text"
MESSAGE_KIND_SYSTEM = "system"
MESSAGE_KINDS = (MESSAGE_KIND_TEXT, MESSAGE_KIND_SYSTEM, "image", "file")


class Identity(Base):
    """A registered chat user. Handle and contact address are stored lower-cased."""
    __tablename__ = "identities"

    id = Column(String(64), primary_key=True)
    handle = Column(String(64), unique=True, nullable=False, index=True)
    contact_address = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    avatar = Column(String(255), nullable=True, default="")
    status_line = Column(String(255), nullable=True, default="")
    bio = Column(Text, nullable=True, default="")
    credential_digest = Column(String(255), nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    last_seen_at = Column(DateTime, default=utcnow, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    memberships = relationship("ChatMember", back_populates="identity")


class Chat(Base):
    """A private (two-party) or group conversation."""
    __tablename__ = "chats"

    id = Column(String(64), primary_key=True)
    kind = Column(String(16), nullable=False)  # private, group
    # Canonical "lower:higher" identity pair for private chats; NULL for groups
    pair_key = Column(String(160), unique=True, nullable=True)
    owner_id = Column(String(64), ForeignKey("identities.id"), nullable=True)
    name = Column(String(255), nullable=True)  # None for private chats; resolved per viewer
    avatar = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    members = relationship(
        "ChatMember",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMember.position",
    )
    messages = relationship("Message", back_populates="chat", cascade="all, delete-orphan")

    @property
    def participant_ids(self) -> list:
        return [m.identity_id for m in self.members]

    @property
    def admin_ids(self) -> list:
        return [m.identity_id for m in self.members if m.is_admin]


class ChatMember(Base):
    """Participation of an identity in a chat."""
    __tablename__ = "chat_members"

    chat_id = Column(String(64), ForeignKey("chats.id"), primary_key=True)
    identity_id = Column(String(64), ForeignKey("identities.id"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)  # insertion order within the chat
    is_admin = Column(Boolean, default=False, nullable=False)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    chat = relationship("Chat", back_populates="members")
    identity = relationship("Identity", back_populates="memberships")


class Message(Base):
    """A chat message. seq is the append order and the only ordering guarantee."""
    __tablename__ = "messages"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, nullable=False, index=True)
    chat_id = Column(String(64), ForeignKey("chats.id"), nullable=False)
    sender_id = Column(String(64), nullable=False)  # identity id or "system"
    sender_handle = Column(String(64), nullable=False)
    sender_display_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    kind = Column(String(16), default=MESSAGE_KIND_TEXT, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    edited = Column(Boolean, default=False, nullable=False)

    chat = relationship("Chat", back_populates="messages")

    __table_args__ = (
        Index("ix_messages_chat_seq", "chat_id", "seq"),
    )
