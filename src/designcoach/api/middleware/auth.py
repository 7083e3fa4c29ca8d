"""JWT Bearer authentication middleware.

Tokens are issued by an external identity service; this layer only verifies
them and attaches the caller to ``request.state.user``. Routes decide whether
an anonymous caller is acceptable.
"""

import logging

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from designcoach.config import settings
from designcoach.logging_config import bind_request_context

logger = logging.getLogger(__name__)

ANONYMOUS = {"sub": "anonymous", "email": ""}


def _decode_jwt(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.debug("JWT decode failed: %s", exc)
        raise ValueError(f"Invalid token: {exc}") from exc


class AuthMiddleware(BaseHTTPMiddleware):
    """Validate a Bearer token if present; attach user info to request.state."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            user_info = self._validate_jwt(auth_header[7:])
        else:
            user_info = dict(ANONYMOUS)

        request.state.user = user_info
        if user_info.get("sub") not in ("anonymous", ""):
            bind_request_context(getattr(request.state, "request_id", "unknown"), user_info["sub"])
        return await call_next(request)

    def _validate_jwt(self, token: str) -> dict:
        try:
            payload = _decode_jwt(token)
        except ValueError:
            return {**ANONYMOUS, "_auth_error": "invalid_token"}

        if payload.get("type") == "refresh":
            return {**ANONYMOUS, "_auth_error": "not_access_token"}

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return {**ANONYMOUS, "_auth_error": "missing_subject"}

        return {"sub": subject, "email": payload.get("email") or ""}
