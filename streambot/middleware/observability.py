from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from streambot.core.config import BOT_OWNER_UID
from streambot.core.metrics import request_metrics
from streambot.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

# webhook da Meta chega a cada mensagem; loga só em debug
_QUIET_PATHS = {"/webhook"}


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        tenant_id = request.headers.get("X-Tenant-ID") or BOT_OWNER_UID or None
        set_request_context(request_id=request_id, tenant_id=tenant_id)

        status_code = 500
        response = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            endpoint = _route_template(request)
            request_metrics.observe(
                endpoint=endpoint,
                method=request.method,
                status_code=status_code,
                duration_ms=duration_ms,
            )
            level = logging.DEBUG if endpoint in _QUIET_PATHS and status_code < 400 else logging.INFO
            logger.log(
                level,
                "request completed",
                extra={
                    "endpoint": endpoint,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )
            clear_request_context()


def _route_template(request: Request) -> str:
    """Path com placeholders (/conversations/{chat_id}) para não abrir uma métrica por chat."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path
