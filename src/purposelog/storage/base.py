"""Avatar storage interface.

Services depend on this protocol, not on Cloudinary: the app wires
CloudinaryStorage through get_avatar_storage, tests swap in an
in-memory fake via dependency_overrides.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol


class StorageError(Exception):
    """Raised when a remote asset cannot be deleted."""


@dataclass(frozen=True)
class StoredAsset:
    url: str
    storage_key: str


class AvatarStorage(Protocol):
    async def upload(self, path: Path) -> Optional[StoredAsset]:
        """Push a staged local file; None on failure. Always removes the file."""
        ...

    async def delete(self, storage_key: str) -> None:
        """Delete a remote asset; raises StorageError on failure."""
        ...
