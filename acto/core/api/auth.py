"""
Authentication and profile endpoints.

Registration and login return an access token; the same token authenticates
the WebSocket connection.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from acto.core.memory.db import get_db
from acto.core.memory.models import Identity
from acto.core.schemas import CamelModel, IdentityOut
from acto.core.security.permissions import get_current_user
from acto.core.security.tokens import TokenManager
from acto.core.services.identity_store import IdentityStore
from acto.core.websocket import gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response Models

class RegisterRequest(CamelModel):
    """Request to register a new identity."""
    handle: str
    contact_address: str
    password: str
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    handle: str
    password: str


class ProfileUpdateRequest(CamelModel):
    """Only fields present in the body are applied."""
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    status_line: Optional[str] = None
    bio: Optional[str] = None


class AuthResponse(CamelModel):
    """Token plus the identity it was issued for."""
    success: bool = True
    message: str
    token: str
    identity: IdentityOut


class ProfileResponse(CamelModel):
    success: bool = True
    identity: IdentityOut


class LogoutResponse(BaseModel):
    success: bool = True
    message: str


def _identity_out(identity: Identity) -> IdentityOut:
    return IdentityOut.from_identity(identity, is_online=gateway.presence.is_online(identity.id))


# Endpoints

@router.post("/register", response_model=AuthResponse)
async def register(request: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Create an identity and return a token for it."""
    identity = await IdentityStore.create(
        db,
        handle=request.handle,
        contact_address=request.contact_address,
        password=request.password,
        display_name=request.display_name,
    )
    return AuthResponse(
        message="User registered",
        token=TokenManager.issue_for_identity(identity.id),
        identity=_identity_out(identity),
    )


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Check handle/password and return a fresh token."""
    identity = await IdentityStore.authenticate(db, request.handle, request.password)
    IdentityStore.touch(db, identity.id)
    logger.info("User logged in: %s (@%s)", identity.display_name, identity.handle)
    return AuthResponse(
        message="Logged in",
        token=TokenManager.issue_for_identity(identity.id),
        identity=_identity_out(identity),
    )


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: Identity = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse(identity=_identity_out(user))


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> ProfileResponse:
    """Update display name, avatar, status line or bio. Omitted fields are left unchanged."""
    identity = IdentityStore.update_profile(db, user.id, request.model_dump(exclude_unset=True))
    return ProfileResponse(identity=_identity_out(identity))


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    db: Session = Depends(get_db),
    user: Identity = Depends(get_current_user),
) -> LogoutResponse:
    """Mark the identity offline and release its live WebSocket binding."""
    gateway.sign_out(db, user.id)
    logger.info("User logged out: %s (@%s)", user.display_name, user.handle)
    return LogoutResponse(message="Logged out")
