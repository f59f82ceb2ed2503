from starlette.middleware.base import BaseHTTPMiddleware

from app.core.context import current_request


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind the in-flight Request to a ContextVar so services can read headers."""

    async def dispatch(self, request, call_next):
        token = current_request.set(request)
        try:
            response = await call_next(request)
        finally:
            current_request.reset(token)
        return response
