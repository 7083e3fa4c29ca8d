"""Request ID middleware for request/response propagation."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from designcoach.logging_config import bind_request_context, clear_log_context
from designcoach.services.id_generator import REQUEST, generate_id

# Matches the request_id column width.
MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Extract X-Request-Id from request or generate one, attach to response and log context."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = (request.headers.get("x-request-id") or "").strip()
        request_id = incoming[:MAX_REQUEST_ID_LENGTH] or generate_id(REQUEST)
        request.state.request_id = request_id
        bind_request_context(request_id)

        try:
            response = await call_next(request)
        finally:
            clear_log_context()
        response.headers["X-Request-Id"] = request_id
        return response
