"""
Demo identities created at startup so a fresh server has someone to talk to.

All demo accounts use the password "123456".
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from acto.core.memory.models import Identity
from acto.core.memory.repository import IdentityRepository
from acto.core.security.passwords import hash_password_sync

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "123456"

DEMO_USERS = [
    {
        "identity_id": "demo_alice",
        "handle": "alice",
        "contact_address": "alice@acto.uim",
        "display_name": "Alice Johnson",
        "avatar": "👩",
        "status_line": "Hi! I'm Alice 👋",
        "bio": "Loves programming and design",
    },
    {
        "identity_id": "demo_bob",
        "handle": "bob",
        "contact_address": "bob@acto.uim",
        "display_name": "Bob Smith",
        "avatar": "👨",
        "status_line": "Developer and gamer 🎮",
        "bio": "Full-stack developer",
    },
    {
        "identity_id": "demo_charlie",
        "handle": "charlie",
        "contact_address": "charlie@acto.uim",
        "display_name": "Charlie Brown",
        "avatar": "🧑",
        "status_line": "Into music and art 🎨",
        "bio": "Musician and artist",
    },
]


def seed_demo_users(db: Session) -> List[Identity]:
    """Create the demo identities that do not exist yet. Returns the ones created."""
    created = []
    digest = None
    for entry in DEMO_USERS:
        if IdentityRepository.find_conflicting(db, entry["handle"], entry["contact_address"]):
            continue
        if digest is None:
            digest = hash_password_sync(DEMO_PASSWORD)
        created.append(IdentityRepository.create(db, credential_digest=digest, **entry))
    if created:
        logger.info("Demo users created: %s", ", ".join(i.handle for i in created))
    return created
