"""User service — profile reads/updates, password change, account deletion.

Remote avatar deletion is always best-effort here: a Cloudinary failure
is logged and the primary operation carries on.
"""

from typing import Optional

import structlog
from fastapi import UploadFile
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from purposelog.auth.password import PasswordHasher
from purposelog.config import Settings
from purposelog.db.models import Task, User
from purposelog.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from purposelog.services.user_store import UserStore
from purposelog.storage import AvatarStorage, StorageError
from purposelog.storage.uploads import upload_avatar

logger = structlog.get_logger()


def _present(value: Optional[str]) -> Optional[str]:
    """Blank form fields count as 'not supplied'."""
    return value if value and value.strip() else None


class UserService:
    def __init__(
        self,
        db: AsyncSession,
        hasher: PasswordHasher,
        storage: AvatarStorage,
        settings: Settings,
    ):
        self.db = db
        self.users = UserStore(db)
        self.hasher = hasher
        self.storage = storage
        self.settings = settings

    async def get_profile(self, user: User) -> User:
        current = await self.users.get(user.id)
        if current is None:
            raise NotFoundError("User not found")
        return current

    async def update_profile(
        self,
        user: User,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[UploadFile] = None,
    ) -> User:
        """Apply supplied fields; a conflict or failed upload changes nothing.

        Learn: All checks (uniqueness, upload) run before any attribute is
        touched, so an error leaves the row exactly as it was.
        """
        full_name = _present(full_name)
        username = _present(username)
        email = _present(email)

        if (username or email) and await self.users.find_conflict(
            username, email, exclude_id=user.id
        ):
            raise ConflictError()

        asset = None
        if avatar is not None and avatar.filename:
            asset = await upload_avatar(
                self.storage, avatar, self.settings.upload_dir
            )

        user_id = str(user.id)
        old_key = user.avatar_storage_key
        if full_name:
            user.full_name = full_name
        if username:
            user.username = username
        if email:
            user.email = email
        if asset:
            user.avatar_url = asset.url
            user.avatar_storage_key = asset.storage_key

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if asset:
                await self._discard_avatar(user_id, asset.storage_key)
            raise ConflictError()

        if asset and old_key:
            await self._discard_avatar(user_id, old_key)

        logger.info("user.profile_updated", user_id=user_id)
        return user

    async def change_password(
        self, user: User, old_password: Optional[str], new_password: Optional[str]
    ) -> None:
        """Re-hash once; sessions already issued are left untouched."""
        if not _present(old_password) or not _present(new_password):
            raise ValidationError("Old and new password are required")

        if not await self.hasher.verify(old_password, user.password_hash):
            raise InvalidCredentialsError("Old password is incorrect")

        user.password_hash = await self.hasher.hash(new_password)
        await self.db.commit()
        logger.info("user.password_changed", user_id=str(user.id))

    async def delete_account(self, user: User) -> None:
        """Remove the avatar, every owned task, then the user row."""
        user_id = user.id
        if user.avatar_storage_key:
            await self._discard_avatar(str(user_id), user.avatar_storage_key)

        await self.db.execute(delete(Task).where(Task.owner_id == user_id))
        await self.db.delete(user)
        await self.db.commit()
        logger.info("user.deleted", user_id=str(user_id))

    async def _discard_avatar(self, user_id: str, storage_key: str) -> None:
        try:
            await self.storage.delete(storage_key)
        except StorageError as e:
            logger.warning(
                "user.avatar_delete_failed",
                user_id=user_id,
                storage_key=storage_key,
                error=str(e),
            )
