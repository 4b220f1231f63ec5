"""Rate limiting middleware: Redis fixed-window counter.

Only coin-moving endpoints are limited:
  POST /api/v1/shop/items/{id}/purchase
  POST /api/v1/rewards/{ref}/claim
  POST /api/v1/scenarios/{id}/predictions | steal | shield

Key pattern: "ratelimit:{user_id_or_ip}:{window}" where window is the
current minute. The first INCR in a window sets a 60s EXPIRE. A Redis outage
lets requests through; balances are protected by the ledger itself.
"""

import logging
import re
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from config.settings import settings
from src.pm_common.errors import RateLimitError
from src.pm_common.redis_client import get_redis
from src.pm_common.response import error_response
from src.pm_gateway.auth.dependencies import USER_ID_HEADER

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

_LIMITED_PATHS = re.compile(
    r"^/api/v1/("
    r"shop/items/[^/]+/purchase"
    r"|rewards/[^/]+/claim"
    r"|scenarios/[^/]+/(predictions|steal|shield)"
    r")$"
)


def _client_key(request: Request) -> str:
    user_id = request.headers.get(USER_ID_HEADER)
    if user_id:
        return f"user:{user_id.strip()}"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limit: int | None = None,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
    ) -> None:
        super().__init__(app)
        self._limit = limit if limit is not None else settings.RATE_LIMIT_PER_MINUTE
        self._redis_getter = redis_getter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or not _LIMITED_PATHS.match(request.url.path):
            return await call_next(request)

        window = int(time.time()) // WINDOW_SECONDS
        key = f"ratelimit:{_client_key(request)}:{window}"
        try:
            redis = await self._redis_getter()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, WINDOW_SECONDS)
        except RedisError:
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path)
            return await call_next(request)

        if count > self._limit:
            logger.info("Rate limit exceeded: key=%s count=%d", key, count)
            exc = RateLimitError()
            retry_after = WINDOW_SECONDS - int(time.time()) % WINDOW_SECONDS
            return JSONResponse(
                status_code=exc.http_status,
                content=error_response(exc.code, exc.message).model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
