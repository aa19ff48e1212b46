import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

ROLE_USER = "user"
ROLE_ADMIN = "admin"


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column is stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return uuid.uuid4().hex


class User(SQLModel, table=True):
    """Ledger side of an account. Identity and credentials live upstream."""

    __tablename__ = "users"

    id: str = Field(primary_key=True)
    role: str = Field(default=ROLE_USER)
    is_active: bool = Field(default=True)
    storage_used: int = Field(default=0)
    max_storage: int
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class FileRecord(SQLModel, table=True):
    __tablename__ = "files"

    id: str = Field(default_factory=_new_id, primary_key=True)
    share_id: str = Field(unique=True, index=True)
    original_name: str
    stored_name: str = Field(unique=True)  # bytes live at UPLOAD_DIR/stored_name
    content_type: str
    size_bytes: int
    owner_id: str = Field(foreign_key="users.id", index=True)
    folder_id: Optional[str] = Field(default=None, index=True)

    is_public: bool = Field(default=False)
    password_hash: Optional[str] = Field(default=None)
    expires_at: Optional[datetime] = Field(default=None, index=True)

    download_count: int = Field(default=0)
    view_count: int = Field(default=0)
    last_downloaded_at: Optional[datetime] = Field(default=None)

    description: Optional[str] = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    is_active: bool = Field(default=True, index=True)
    deleted_at: Optional[datetime] = Field(default=None)
    deleted_by: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def is_live(self, now: datetime | None = None) -> bool:
        """Computed lifecycle: active and not past its expiry."""
        return bool(self.is_active) and not self.is_expired(now)
