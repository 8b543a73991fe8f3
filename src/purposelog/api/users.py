"""User API — the authenticated user's own profile and account."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.auth.cookies import clear_auth_cookies
from purposelog.auth.dependencies import get_current_user, get_password_hasher
from purposelog.auth.password import PasswordHasher
from purposelog.config import Settings, get_settings
from purposelog.db.engine import get_db
from purposelog.db.models import User
from purposelog.errors import envelope
from purposelog.schemas.user import ChangePasswordRequest, serialize_user
from purposelog.services.user_service import UserService
from purposelog.storage import AvatarStorage, get_avatar_storage

router = APIRouter(prefix="/users")


def _svc(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    storage: AvatarStorage = Depends(get_avatar_storage),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(db, hasher, storage, settings)


@router.get("/profile")
async def get_profile(
    user: User = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    user = await svc.get_profile(user)
    return envelope(
        "User profile fetched successfully", data={"user": serialize_user(user)}
    )


@router.post("/profile")
async def update_profile(
    full_name: Optional[str] = Form(None, alias="fullName"),
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    """Update name/username/email and optionally replace the avatar."""
    user = await svc.update_profile(
        user, full_name=full_name, username=username, email=email, avatar=avatar
    )
    return envelope(
        "Profile updated successfully", data={"user": serialize_user(user)}
    )


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    await svc.change_password(user, body.old_password, body.new_password)
    return envelope("Password changed successfully")


@router.delete("/delete")
async def delete_account(
    response: Response,
    user: User = Depends(get_current_user),
    svc: UserService = Depends(_svc),
    settings: Settings = Depends(get_settings),
):
    """Delete the account and every task it owns; ends the session."""
    await svc.delete_account(user)
    clear_auth_cookies(response, settings)
    return envelope("Account deleted successfully")
