"""Pydantic schemas for users and auth payloads.

Learn: The wire format is camelCase (fullName, createdAt) while Python
attributes stay snake_case; alias_generator bridges the two and
populate_by_name lets either spelling in. UserRead is the ONLY way a
user leaves the API, and it has no password or refresh-token field —
secrets cannot leak through a forgotten exclude.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from purposelog.db.models import User

camel_config = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    from_attributes=True,
)


class AvatarRead(BaseModel):
    url: str
    storage_key: Optional[str] = None

    model_config = camel_config


class UserRead(BaseModel):
    id: uuid.UUID
    full_name: Optional[str] = None
    username: str
    email: str
    avatar: Optional[AvatarRead] = None
    role: str
    created_at: datetime
    updated_at: datetime

    model_config = camel_config


class LoginRequest(BaseModel):
    """Either identifier may be given; presence is checked by the service."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    model_config = camel_config


class ChangePasswordRequest(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None

    model_config = camel_config


def serialize_user(user: User) -> dict:
    return UserRead.model_validate(user).model_dump(mode="json", by_alias=True)
