"""Request ID middleware — one id per request for log correlation.

Learn: The id comes from an incoming X-Request-ID header (when a proxy
already assigned one) or is generated here. It is bound into structlog's
contextvars, so every log line written while handling the request carries
it, and echoed back in the response header.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

MAX_INCOMING_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind and propagate X-Request-ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get("X-Request-ID", "")
        # Oversized ids would bloat every log line.
        if incoming and len(incoming) <= MAX_INCOMING_LENGTH:
            request_id = incoming
        else:
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
