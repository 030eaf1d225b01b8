"""FastAPI authentication routes.

Provides endpoints for login, logout, current user, invite acceptance
and password change.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from showcase.core.auth import AuthService
from ..core import GoneError
from ..core.rate_limit import auth_rate_limit, limiter
from ..deps import get_current_user, get_db_manager, record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Request/Response models ──────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: str
    password: str


class AcceptInviteRequest(BaseModel):
    token: str
    password: str


class PasswordChangeRequest(BaseModel):
    old_password: str
    new_password: str


def _user_payload(user) -> dict:
    return {
        "id": str(user.user_id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
    }


def _start_session(request: Request, user) -> None:
    request.session.clear()
    request.session["user_id"] = str(user.user_id)
    request.session["email"] = user.email
    request.session["name"] = user.name
    request.session["role"] = user.role


# ── Routes ───────────────────────────────────────────────────────────────

@router.post("/login")
@limiter.limit(auth_rate_limit)
async def login(data: LoginRequest, request: Request, db_manager=Depends(get_db_manager)):
    """Authenticate with email and password."""
    with db_manager.get_session() as db_session:
        auth_service = AuthService(db_session)
        user, reason = auth_service.login(data.email, data.password)
        user_id = str(user.user_id) if user else None
        if not reason:
            _start_session(request, user)
            payload = _user_payload(user)

    if reason:
        record_audit(
            request, "auth:login_failed", "user",
            resource_id=user_id,
            user_id=user_id,
            details={"email": data.email, "reason": reason},
        )
        logger.warning(f"Login failed for {data.email}: {reason}")
        if reason == "inactive_account":
            raise HTTPException(status_code=403, detail="User account is not active")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    record_audit(request, "auth:login", "user", resource_id=payload["id"], user_id=payload["id"])
    return {"user": payload}


@router.post("/logout")
async def logout(request: Request):
    """Logout current user."""
    user_id = request.session.get("user_id")
    if user_id:
        record_audit(request, "auth:logout", "user", resource_id=user_id, user_id=user_id)
    request.session.clear()
    return {"message": "Logged out"}


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Get current logged-in user info."""
    return {
        "user": {
            "id": user["user_id"],
            "email": user["email"],
            "name": user["name"],
            "role": user["role"],
        }
    }


@router.get("/validate-invite")
async def validate_invite(token: str = "", db_manager=Depends(get_db_manager)):
    """Check an invite token before showing the set-password form."""
    if not token:
        raise HTTPException(status_code=400, detail="Invite token is required")

    with db_manager.get_session() as db_session:
        auth_service = AuthService(db_session)
        user = auth_service.find_by_invite_token(token)
        if not user:
            raise HTTPException(status_code=404, detail="Invalid or already used invite")
        if auth_service.invite_expired(user):
            raise GoneError("Invite has expired")
        return {"email": user.email, "name": user.name}


@router.post("/accept-invite")
@limiter.limit(auth_rate_limit)
async def accept_invite(
    data: AcceptInviteRequest,
    request: Request,
    db_manager=Depends(get_db_manager),
):
    """Set a password for an invited account and log in."""
    problems = AuthService.validate_password_strength(data.password)
    if problems:
        raise HTTPException(status_code=400, detail="; ".join(problems))

    with db_manager.get_session() as db_session:
        auth_service = AuthService(db_session)
        user = auth_service.find_by_invite_token(data.token)
        if not user:
            raise HTTPException(status_code=404, detail="Invalid or already used invite")
        if auth_service.invite_expired(user):
            raise GoneError("Invite has expired")

        auth_service.accept_invite(user, data.password)
        _start_session(request, user)
        payload = _user_payload(user)

    record_audit(request, "auth:invite_accepted", "user", resource_id=payload["id"], user_id=payload["id"])
    return {"user": payload}


@router.post("/password")
async def change_password(
    data: PasswordChangeRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    db_manager=Depends(get_db_manager),
):
    """Change current user's password."""
    problems = AuthService.validate_password_strength(data.new_password)
    if problems:
        raise HTTPException(status_code=400, detail="; ".join(problems))

    with db_manager.get_session() as db_session:
        auth_service = AuthService(db_session)
        success = auth_service.change_password(
            current_user["user_id"], data.old_password, data.new_password
        )

        if not success:
            raise HTTPException(status_code=400, detail="Invalid old password")

    record_audit(request, "auth:password_changed", "user", resource_id=current_user["user_id"])
    return {"message": "Password changed successfully"}
