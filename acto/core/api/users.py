"""
User search endpoint.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from acto.core.memory.db import get_db
from acto.core.memory.models import Identity
from acto.core.schemas import CamelModel, UserSummary
from acto.core.security.permissions import get_current_user
from acto.core.services.identity_store import IdentityStore
from acto.core.websocket import gateway

router = APIRouter(prefix="/users", tags=["users"])


class UserSearchResponse(CamelModel):
    success: bool = True
    users: List[UserSummary]


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> UserSearchResponse:
    """Match handle or display name. Queries under two characters return nothing; the caller is never listed."""
    matches = IdentityStore.search(db, user.id, q)
    return UserSearchResponse(
        users=[UserSummary.from_identity(m, gateway.presence.is_online(m.id)) for m in matches]
    )
