"""Remote avatar storage and local upload staging."""

from fastapi import Depends

from purposelog.config import Settings, get_settings
from purposelog.storage.base import AvatarStorage, StorageError, StoredAsset
from purposelog.storage.cloudinary import CloudinaryStorage


def get_avatar_storage(settings: Settings = Depends(get_settings)) -> AvatarStorage:
    """FastAPI dependency — the configured avatar backend."""
    return CloudinaryStorage(settings)


__all__ = [
    "AvatarStorage",
    "CloudinaryStorage",
    "StorageError",
    "StoredAsset",
    "get_avatar_storage",
]
