from __future__ import annotations

from dataclasses import dataclass

from sharebox.models import ROLE_ADMIN, ROLE_USER


@dataclass(frozen=True)
class RequestContext:
    """Who is asking. Built per request and passed into every service call."""

    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_headers(cls, user_id: str, role: str | None) -> "RequestContext":
        normalized = (role or "").strip().lower()
        return cls(user_id=user_id.strip(), role=ROLE_ADMIN if normalized == ROLE_ADMIN else ROLE_USER)
