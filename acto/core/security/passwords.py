"""
Password hashing and verification for identity credentials.

The async helpers run bcrypt in the threadpool; the event loop never waits on a hash.
"""
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from acto.core.config import settings

_password_ctx = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def hash_password_sync(password: str) -> str:
    """Hash a password for storage."""
    return _password_ctx.hash(password)


def verify_password_sync(password: str, hashed: str) -> bool:
    """Verify a password against a stored hash."""
    if not hashed:
        return False
    try:
        return _password_ctx.verify(password, hashed)
    except (ValueError, TypeError):
        return False


async def hash_password(password: str) -> str:
    return await run_in_threadpool(hash_password_sync, password)


async def verify_password(password: str, hashed: str) -> bool:
    return await run_in_threadpool(verify_password_sync, password, hashed)
