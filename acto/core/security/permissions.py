"""
Bearer-token authentication for HTTP routes.
"""
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from acto.core.errors import InvalidToken
from acto.core.memory.db import get_db
from acto.core.memory.models import Identity
from acto.core.memory.repository import IdentityRepository
from acto.core.security.tokens import TokenManager


security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Identity:
    """
    Dependency to get the current authenticated identity from the bearer token.

    Raises:
        InvalidToken if the token is missing, invalid, or its identity no longer exists
    """
    if credentials is None or not credentials.credentials:
        raise InvalidToken("Token not provided")

    identity_id = TokenManager.identity_id_from_token(credentials.credentials)
    if identity_id is None:
        raise InvalidToken("Invalid authentication token")

    identity = IdentityRepository.get_by_id(db, identity_id)
    if identity is None:
        raise InvalidToken("User not found")
    return identity
