"""
api/routes/v1/user.py -- Account endpoints for the authenticated user.

Routes (all require bearer auth):
  GET    /api/v1/user/profile    -- current profile
  PATCH  /api/v1/user/profile    -- change email
  DELETE /api/v1/user/account    -- delete the account
  GET    /api/v1/user/stats      -- account summary
  GET    /api/v1/user/test-auth  -- echo the authenticated identity

Every handler acts on auth.user_id only, never on an id from the request, so
one user cannot touch another user's account.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.models import MessageResponse, ProfileResponse, ProfileUpdate, UserResponse
from auth.authenticator import AuthContext
from auth.dependencies import get_auth_context, get_auth_service
from auth.service import AuthService

router = APIRouter()


@router.get("/user/profile", response_model=ProfileResponse)
async def get_profile(auth: AuthContext = Depends(get_auth_context)) -> ProfileResponse:
    return ProfileResponse(user=UserResponse.from_public(auth.user))


@router.patch("/user/profile", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdate,
    auth: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    """Update the current user's email.

    Tokens issued before the change carry the old email claim and will fail
    the authenticator's payload check, so the client must log in again.
    """
    user = service.update_profile(auth.user_id, email=body.email)
    return ProfileResponse(message="Profile updated successfully", user=UserResponse.from_public(user))


@router.delete("/user/account", response_model=MessageResponse)
def delete_account(
    auth: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.delete_account(auth.user_id)
    return MessageResponse(message="Account deleted successfully")


@router.get("/user/stats")
async def get_stats(auth: AuthContext = Depends(get_auth_context)) -> dict:
    """Account summary. Only facts the user record actually holds are reported."""
    return {
        "success": True,
        "stats": {
            "user_id": auth.user_id,
            "member_since": auth.user.created_at,
            "profile_updated_at": auth.user.updated_at,
        },
    }


@router.get("/user/test-auth")
async def test_auth(auth: AuthContext = Depends(get_auth_context)) -> dict:
    return {
        "success": True,
        "message": "Authentication successful",
        "authenticated_user": {
            "id": auth.user_id,
            "email": auth.user.email,
            "auth_time": datetime.now(timezone.utc).isoformat(),
        },
    }
