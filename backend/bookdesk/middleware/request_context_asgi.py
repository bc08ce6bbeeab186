"""
Pure ASGI request context middleware.

Assigns every HTTP request a correlation id (reusing an incoming
``X-Request-ID`` when present), exposes it to logging through a context
variable, echoes it on the response together with ``X-Process-Time``, and
records HTTP request metrics.
"""

import logging
import re
import time

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.request_context import (
    REQUEST_ID_HEADER,
    normalize_request_id,
    reset_request_id,
    set_request_id,
)
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 500.0
SKIP_METRICS_PATHS = {"/metrics", "/health"}

_ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def _endpoint_label(scope: Scope) -> str:
    """
    Route template when routing matched, otherwise the path with ids collapsed.

    Routes mounted through nested routers may report an empty or relative
    template; only a template covering the whole path is used.
    """
    path = scope.get("path", "")
    template = getattr(scope.get("route"), "path", None)
    if isinstance(template, str) and template and template.count("/") == path.count("/"):
        return template
    return "/".join(
        ":id" if segment.isdigit() or _ULID_SEGMENT.match(segment) else segment
        for segment in path.split("/")
    )


class RequestContextMiddlewareASGI:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = normalize_request_id(Headers(scope=scope).get(REQUEST_ID_HEADER))
        scope.setdefault("state", {})["request_id"] = request_id
        token = set_request_id(request_id)

        path = scope.get("path", "")
        method = scope.get("method", "")
        start_time = time.time()
        status_holder = {"code": 500}

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                status_holder["code"] = message["status"]
                process_time = (time.time() - start_time) * 1000
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
                headers["X-Process-Time"] = f"{process_time:.2f}ms"
                if process_time > SLOW_REQUEST_MS:
                    logger.warning(f"Slow request: {method} {path} took {process_time:.2f}ms")
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            logger.error(f"Error in request {method} {path} after {process_time:.2f}ms: {str(e)}")
            raise
        finally:
            if path not in SKIP_METRICS_PATHS:
                prometheus_metrics.record_http_request(
                    method=method,
                    endpoint=_endpoint_label(scope),
                    duration=time.time() - start_time,
                    status_code=status_holder["code"],
                )
            reset_request_id(token)
