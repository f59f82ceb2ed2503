from contextvars import ContextVar
from typing import Optional

from fastapi import Request

current_request: ContextVar[Request | None] = ContextVar(
    "current_request", default=None
)


def client_ip(request: Optional[Request] = None) -> Optional[str]:
    request = request or current_request.get()
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def header_email(request: Optional[Request] = None) -> Optional[str]:
    request = request or current_request.get()
    if request is None:
        return None
    email = (request.headers.get("x-user-email") or "").strip()
    return email or None
