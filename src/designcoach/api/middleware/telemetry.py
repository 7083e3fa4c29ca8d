"""Request telemetry and audit capture.

Runs after the response is produced and hands records to the telemetry sink,
which writes them in the background. Nothing here can fail the request.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from designcoach.models.telemetry import AuditRecord, RequestTelemetryRecord

logger = logging.getLogger(__name__)

AUDITED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
API_PREFIX = "/api/v1"

# Checked in order; the first path parameter present names the audited resource.
_RESOURCE_ID_PARAMS = ("job_id", "version_id", "project_id", "export_id", "token")


def route_template(request: Request) -> str:
    """The matched route's full path template, or the raw path when nothing matched.

    Some FastAPI releases report the template relative to the router prefix,
    so the prefix is put back when the raw path carries it.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if not template:
        return request.url.path
    if request.url.path.startswith(API_PREFIX) and not template.startswith(API_PREFIX):
        template = API_PREFIX + template
    return template


def resource_type_for(path: str) -> str:
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]
    segments = [segment for segment in path.split("/") if segment]
    return segments[0] if segments else "root"


def resource_id_for(path_params: dict) -> str | None:
    for name in _RESOURCE_ID_PARAMS:
        value = path_params.get(name)
        if isinstance(value, str) and value:
            return value
    return None


class TelemetryMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = max(0, round((time.perf_counter() - started) * 1000))
            try:
                self._record(request, status_code, duration_ms)
            except Exception as exc:
                logger.warning("Request telemetry capture failed: %s", exc)

    def _record(self, request: Request, status_code: int, duration_ms: int) -> None:
        sink = getattr(request.app.state, "telemetry", None)
        if sink is None:
            return

        method = request.method.upper()
        path = route_template(request)
        user = getattr(request.state, "user", None) or {}
        user_id = user.get("sub") if user.get("sub") not in (None, "", "anonymous") else None
        request_id = getattr(request.state, "request_id", "unknown")
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")
        path_params = {
            key: str(value) for key, value in (request.scope.get("path_params") or {}).items()
        }

        sink.record_request(
            RequestTelemetryRecord(
                request_id=request_id,
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata={
                    "query_keys": sorted(request.query_params.keys()),
                    "param_keys": sorted(path_params.keys()),
                },
            )
        )

        if method in AUDITED_METHODS:
            sink.record_audit(
                AuditRecord(
                    user_id=user_id,
                    action=f"{method} {path}",
                    resource_type=resource_type_for(path),
                    resource_id=resource_id_for(path_params),
                    status_code=status_code,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    metadata={
                        "request_id": request_id,
                        "duration_ms": duration_ms,
                        "params": path_params,
                    },
                )
            )
