"""SQLAlchemy ORM models — users and their tasks.

Learn: SQLAlchemy 2.0 declarative style (Mapped[] + mapped_column).
Column types are the portable ones (Uuid, DateTime, String) so the same
models run on PostgreSQL in production and SQLite in tests.

Timestamps use Python-side defaults rather than server_default: the
values are populated on the instance at flush time, so async code can
read created_at/updated_at after commit without a lazy refresh.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

USER_ROLES = ("user", "admin")
TASK_STATUSES = ("todo", "in-progress", "done")
TASK_PRIORITIES = ("low", "medium", "high")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def normalize_identifier(value: str) -> str:
    """Usernames and emails are compared and stored trimmed + lowercased."""
    return value.strip().lower()


class User(Base):
    """A registered account.

    Learn: refresh_token_digest is the single session slot. It holds the
    SHA-256 of the most recently issued refresh token; login and refresh
    overwrite it, logout clears it. Only a presented token whose digest
    matches is accepted, so rotated-out tokens are rejected even while
    their signature is still valid.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    full_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_storage_key: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="user"
    )  # user, admin
    refresh_token_digest: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @validates("username", "email")
    def _normalize(self, key: str, value: str) -> str:
        return normalize_identifier(value)

    @validates("full_name")
    def _trim_full_name(self, key: str, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None

    @validates("role")
    def _check_role(self, key: str, value: str) -> str:
        if value not in USER_ROLES:
            raise ValueError(f"Invalid role: {value}")
        return value

    @property
    def avatar(self) -> Optional[dict]:
        if not self.avatar_url:
            return None
        return {"url": self.avatar_url, "storage_key": self.avatar_storage_key}


class Task(Base):
    """A to-do item. Always scoped to its owner."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="todo"
    )  # todo, in-progress, done
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low, medium, high
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
