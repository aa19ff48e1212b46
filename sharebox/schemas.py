from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sharebox.models import ROLE_ADMIN, ROLE_USER


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class FileUpdate(_Body):
    is_public: Optional[bool] = Field(default=None, alias="isPublic")
    password: Optional[str] = None
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    description: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: Optional[str]) -> Optional[str]:
        # Empty string clears protection
        if value and not 4 <= len(value) <= 50:
            raise ValueError("Password must be between 4 and 50 characters")
        return value

    @field_validator("description")
    @classmethod
    def _description_length(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > 500:
            raise ValueError("Description cannot exceed 500 characters")
        return value

    @field_validator("expires_at")
    @classmethod
    def _naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @field_validator("tags")
    @classmethod
    def _trim_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        return [tag.strip() for tag in value if tag and tag.strip()]


class PasswordBody(_Body):
    password: Optional[str] = None


class UserUpdate(_Body):
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    role: Optional[str] = None
    max_storage: Optional[int] = Field(default=None, alias="maxStorage", gt=0)

    @field_validator("role")
    @classmethod
    def _known_role(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in {ROLE_USER, ROLE_ADMIN}:
            raise ValueError("Role must be 'user' or 'admin'")
        return value
