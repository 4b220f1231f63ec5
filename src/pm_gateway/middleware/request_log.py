"""Access log for every HTTP request, tagged with a correlation id.

The id is taken from an upstream ``X-Request-Id`` header when it looks sane,
otherwise minted here. It is exposed on ``request.state.request_id`` for the
response envelope and echoed back in the response header.

    INFO [POST] /api/v1/shop/items/hat/purchase → 200 (23ms) user=u_42 req_a1b2c3d4e5f6
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.pm_gateway.auth.dependencies import USER_ID_HEADER

REQUEST_ID_HEADER = "X-Request-Id"
_UPSTREAM_ID = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")

logger = logging.getLogger("pm.request")


def _request_id(request: Request) -> str:
    upstream = request.headers.get(REQUEST_ID_HEADER, "")
    if _UPSTREAM_ID.match(upstream):
        return upstream
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id

        started = time.perf_counter()
        response: Response = await call_next(request)
        latency_ms = (time.perf_counter() - started) * 1000

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) user=%s %s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request.headers.get(USER_ID_HEADER, "-"),
            request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
