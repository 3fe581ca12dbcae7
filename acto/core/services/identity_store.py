"""
Identity store: registration, credential checks, profiles, presence flags, search.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from acto.core.config import settings
from acto.core.errors import Conflict, InvalidArgument, InvalidCredentials, NotFound
from acto.core.memory.models import Identity
from acto.core.memory.repository import IdentityRepository
from acto.core.security.passwords import hash_password, hash_password_sync, verify_password

logger = logging.getLogger(__name__)

# Columns editable through update_profile. id, handle, contact address and the
# credential digest are never changed here.
PROFILE_FIELDS = ("display_name", "avatar", "status_line", "bio")

_dummy_digest: Optional[str] = None


def _digest_for_unknown_handle() -> str:
    """A real digest to verify against when the handle does not exist, so both paths cost the same."""
    global _dummy_digest
    if _dummy_digest is None:
        _dummy_digest = hash_password_sync("acto-unknown-handle")
    return _dummy_digest


def _required(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidArgument(f"{field} is required")
    return value


class IdentityStore:
    """Operations on identities. Every method takes the caller's session."""

    @staticmethod
    async def create(
        db: Session,
        handle: str,
        contact_address: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> Identity:
        """
        Register a new identity.

        Raises:
            InvalidArgument: handle, contact address or password missing
            Conflict: handle or contact address taken (case-insensitive)
        """
        handle = _required(handle, "handle")
        contact_address = _required(contact_address, "contactAddress")
        if not password:
            raise InvalidArgument("password is required")

        if IdentityRepository.find_conflicting(db, handle, contact_address):
            raise Conflict()

        digest = await hash_password(password)

        # Another registration may have landed while the hash was computed.
        if IdentityRepository.find_conflicting(db, handle, contact_address):
            raise Conflict()
        try:
            identity = IdentityRepository.create(
                db,
                handle=handle,
                contact_address=contact_address,
                display_name=(display_name or "").strip() or handle,
                credential_digest=digest,
            )
        except IntegrityError:
            raise Conflict()

        logger.info("New identity registered: %s (@%s)", identity.display_name, identity.handle)
        return identity

    @staticmethod
    async def authenticate(db: Session, handle: str, password: str) -> Identity:
        """
        Check a handle/password pair.

        Raises InvalidCredentials with the same message whether or not the
        handle exists.
        """
        identity = IdentityRepository.get_by_handle(db, handle or "") if handle else None
        if identity is None:
            await verify_password(password or "", _digest_for_unknown_handle())
            raise InvalidCredentials()
        if not await verify_password(password or "", identity.credential_digest):
            raise InvalidCredentials()
        return identity

    @staticmethod
    def get(db: Session, identity_id: str) -> Identity:
        identity = IdentityRepository.get_by_id(db, identity_id)
        if identity is None:
            raise NotFound("User not found")
        return identity

    @staticmethod
    def get_by_handle(db: Session, handle: str) -> Identity:
        identity = IdentityRepository.get_by_handle(db, handle)
        if identity is None:
            raise NotFound("User not found")
        return identity

    @staticmethod
    def update_profile(db: Session, identity_id: str, fields: Dict[str, Any]) -> Identity:
        """
        Apply the profile fields present in `fields`.

        Absent keys are left alone; an explicit None clears the field to "".
        Keys outside PROFILE_FIELDS are ignored.
        """
        identity = IdentityStore.get(db, identity_id)
        changes = {}
        for key, value in fields.items():
            if key not in PROFILE_FIELDS:
                logger.debug("Ignoring non-profile field %s for %s", key, identity_id)
                continue
            changes[key] = "" if value is None else value
        if changes:
            IdentityRepository.update_fields(db, identity, changes)
            logger.info("Profile updated: %s (@%s)", identity.display_name, identity.handle)
        return identity

    @staticmethod
    def set_presence(db: Session, identity_id: str, online: bool) -> None:
        """Set the online flag and stamp lastSeenAt."""
        IdentityRepository.set_presence(db, identity_id, online)

    @staticmethod
    def touch(db: Session, identity_id: str) -> None:
        IdentityRepository.update_last_seen(db, identity_id)

    @staticmethod
    def search(db: Session, requester_id: str, query: Optional[str]) -> List[Identity]:
        """Up to search_result_limit identities matching handle or display name, never the requester."""
        query = (query or "").strip()
        if len(query) < settings.search_min_query_length:
            return []
        return IdentityRepository.search(
            db,
            query=query,
            exclude_id=requester_id,
            limit=settings.search_result_limit,
        )
