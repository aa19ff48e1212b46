from __future__ import annotations

import logging
import urllib.parse
from typing import Optional

from fastapi import Depends, Header, Query, Request
from fastapi.responses import FileResponse, Response
from sqlmodel import Session

from sharebox.config import AUTH_ROLE_HEADER, AUTH_USER_HEADER, RATE_LIMIT_PER_MINUTE
from sharebox.core.context import RequestContext
from sharebox.core.exceptions import AuthenticationRequired, Forbidden, RateLimited
from sharebox.core.rate_limit import RateLimiter
from sharebox.db import get_session
from sharebox.services import users
from sharebox.services.delivery import Delivery

logger = logging.getLogger("sharebox")

rate_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE)


async def enforce_rate_limit(request: Request):
    client = request.client.host if request.client else "unknown"
    allowed, retry_after = rate_limiter.hit(client)
    if not allowed:
        logger.warning("event=rate_limited client=%s path=%s", client, request.url.path)
        raise RateLimited(
            f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


def current_context(request: Request, session: Session = Depends(get_session)) -> RequestContext:
    user_id = (request.headers.get(AUTH_USER_HEADER) or "").strip()
    if not user_id:
        raise AuthenticationRequired()
    ctx = RequestContext.from_headers(user_id, request.headers.get(AUTH_ROLE_HEADER))
    users.load_account(session, ctx)
    return ctx


def admin_context(ctx: RequestContext = Depends(current_context)) -> RequestContext:
    if not ctx.is_admin:
        raise Forbidden("Admin access required")
    return ctx


def supplied_password(
    x_file_password: Optional[str] = Header(None),
    password: Optional[str] = Query(None),
) -> Optional[str]:
    """Password for content reads that have no request body."""
    return x_file_password or password


def content_disposition(disposition: str, filename: str) -> str:
    quoted = urllib.parse.quote(filename, safe="")
    fallback = filename.encode("latin-1", "ignore").decode("latin-1").replace('"', "")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quoted}"


def send(delivery: Delivery) -> Response:
    headers = {
        "Content-Disposition": content_disposition(delivery.disposition, delivery.filename),
        "Cache-Control": delivery.cache_control,
    }
    if delivery.body is not None:
        return Response(content=delivery.body, media_type=delivery.media_type, headers=headers)
    return FileResponse(delivery.path, media_type=delivery.media_type, headers=headers)
