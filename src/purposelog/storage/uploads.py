"""Staging of multipart uploads on local disk.

The uploaded file is written under a random hex name (keeping the
original extension) before being pushed to remote storage. The storage
client removes it after the push, success or not.

Learn: this is the only place an avatar is uploaded from, so both
registration and profile update share the same rule — no asset, no
record change.
"""

import secrets
import shutil
from pathlib import Path
from typing import BinaryIO

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from purposelog.errors import UploadFailedError
from purposelog.storage.base import AvatarStorage, StoredAsset

CHUNK_SIZE = 64 * 1024


def _write_staged(source: BinaryIO, directory: Path, path: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as out:
        shutil.copyfileobj(source, out, CHUNK_SIZE)


async def stage_upload(file: UploadFile, upload_dir: str) -> Path:
    """Copy the upload to disk in the threadpool; returns the staged path."""
    directory = Path(upload_dir)
    suffix = Path(file.filename or "").suffix.lower()
    path = directory / f"{secrets.token_hex(8)}{suffix}"

    await file.seek(0)
    await run_in_threadpool(_write_staged, file.file, directory, path)
    return path


async def upload_avatar(
    storage: AvatarStorage, file: UploadFile, upload_dir: str
) -> StoredAsset:
    """Stage and push an avatar; UploadFailedError if storage rejects it."""
    path = await stage_upload(file, upload_dir)
    asset = await storage.upload(path)
    if asset is None:
        raise UploadFailedError()
    return asset
