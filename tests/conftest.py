"""Test fixtures — in-memory database, fake avatar storage, HTTP client.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets a fresh in-memory SQLite engine (aiosqlite + StaticPool,
   so every session shares the one connection) with all tables created.
2. get_db is overridden to hand out sessions from that engine — each
   request still gets its own session, like production.
3. get_avatar_storage is overridden with FakeAvatarStorage, which keeps
   uploads in a dict and can be told to fail uploads or deletions.
4. get_settings is overridden with cheap bcrypt rounds and a tmp upload dir.

The client keeps cookies between requests like a browser, so
register → profile → logout flows need no manual token plumbing.
"""

from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from purposelog.config import Settings, get_settings
from purposelog.db.engine import create_all, get_db
from purposelog.main import app
from purposelog.storage import StorageError, StoredAsset, get_avatar_storage

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeAvatarStorage:
    """In-memory AvatarStorage with switchable failures."""

    def __init__(self):
        self.assets: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_uploads = False
        self.fail_deletes = False
        self._counter = 0

    async def upload(self, path: Path) -> Optional[StoredAsset]:
        try:
            if self.fail_uploads:
                return None
            self._counter += 1
            key = f"PurposeLog/avatars/avatar-{self._counter}"
            self.assets[key] = path.read_bytes()
            return StoredAsset(
                url=f"https://res.cloudinary.test/image/upload/{key}.png",
                storage_key=key,
            )
        finally:
            path.unlink(missing_ok=True)

    async def delete(self, storage_key: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"Failed to delete {storage_key}: boom")
        self.assets.pop(storage_key, None)
        self.deleted.append(storage_key)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=TEST_DB_URL,
        bcrypt_rounds=4,
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def storage() -> FakeAvatarStorage:
    return FakeAvatarStorage()


@pytest_asyncio.fixture()
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(engine)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(session_factory, storage, test_settings):
    """HTTP client against the real auth pipeline with test collaborators."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_avatar_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Helpers ─────────────────────────────────────────────


async def register_user(
    client: AsyncClient,
    username: str = "amy",
    email: str = "amy@x.com",
    password: str = "secret1",
    full_name: str = "Amy Pond",
    with_avatar: bool = True,
):
    files = {"avatar": ("amy.png", PNG_BYTES, "image/png")} if with_avatar else None
    return await client.post(
        "/api/v1/auth/register",
        data={
            "fullName": full_name,
            "username": username,
            "email": email,
            "password": password,
        },
        files=files,
    )


def cookie_header(**cookies: str) -> dict[str, str]:
    """Explicit Cookie header — overrides whatever the client's jar holds."""
    return {"Cookie": "; ".join(f"{k}={v}" for k, v in cookies.items())}
