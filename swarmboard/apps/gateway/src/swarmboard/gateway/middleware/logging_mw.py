"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求生成 request_id，绑定到 structlog contextvars，
记录请求耗时，并在响应头 X-Request-ID 中返回。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

# 不记录请求日志的路径（探活请求过于频繁）
_QUIET_PATHS = frozenset({"/health"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件 -- 为每个请求生成 request_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )

        log = structlog.get_logger()
        quiet = path in _QUIET_PATHS
        if not quiet:
            await log.ainfo("request_started")

        start_time = time.monotonic()
        response = await call_next(request)

        if not quiet:
            await log.ainfo(
                "request_completed",
                status_code=response.status_code,
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        response.headers["X-Request-ID"] = request_id
        return response
