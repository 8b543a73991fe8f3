"""Cloudinary avatar storage over its REST upload API.

Learn: Cloudinary's authenticated endpoints take a "signature" form
field: SHA-1 of the sorted, &-joined parameters followed by the API
secret. file, api_key, resource_type and cloud_name are never signed.

    signature = sha1("folder=PurposeLog/avatars&timestamp=1718000000" + secret)

upload() never raises — a failed upload is reported as None so the
caller can answer UploadFailed. The staged temp file is removed either
way.
"""

import hashlib
import time
from pathlib import Path
from typing import Optional

import httpx
import structlog

from purposelog.config import Settings
from purposelog.storage.base import StorageError, StoredAsset

logger = structlog.get_logger()

API_BASE = "https://api.cloudinary.com/v1_1"


def sign_params(params: dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorage:
    """AvatarStorage backed by Cloudinary image uploads."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloud_name = settings.cloudinary_cloud_name
        self.api_key = settings.cloudinary_api_key
        self.api_secret = settings.cloudinary_api_secret
        self.folder = settings.avatar_folder
        self.timeout = settings.storage_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{API_BASE}/{self.cloud_name}",
            timeout=self.timeout,
            transport=self._transport,
        )

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {
            **params,
            "api_key": self.api_key,
            "signature": sign_params(params, self.api_secret),
        }

    async def upload(self, path: Path) -> Optional[StoredAsset]:
        try:
            form = self._signed({"folder": self.folder})
            async with self._client() as client:
                resp = await client.post(
                    "/image/upload",
                    data=form,
                    files={"file": (path.name, path.read_bytes())},
                )
            resp.raise_for_status()
            body = resp.json()
            return StoredAsset(url=body["secure_url"], storage_key=body["public_id"])
        except (httpx.HTTPError, OSError, KeyError, ValueError) as e:
            logger.warning("storage.upload_failed", file=path.name, error=str(e))
            return None
        finally:
            path.unlink(missing_ok=True)

    async def delete(self, storage_key: str) -> None:
        form = self._signed({"public_id": storage_key})
        try:
            async with self._client() as client:
                resp = await client.post("/image/destroy", data=form)
            resp.raise_for_status()
            result = resp.json().get("result")
        except (httpx.HTTPError, ValueError) as e:
            raise StorageError(f"Failed to delete {storage_key}: {e}") from e

        if result not in ("ok", "not found"):
            raise StorageError(f"Failed to delete {storage_key}: {result}")
