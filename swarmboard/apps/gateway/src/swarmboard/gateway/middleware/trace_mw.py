"""TraceMiddleware -- 任务级追踪

为任务操作绑定 trace_id=trace-{mission_id}，贯穿任务相关的请求日志。
mission_id 从 /api/missions/{id}/... 或 /api/stream/mission/{id} 路径中提取。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 字符串长度
_ULID_LENGTH = 26


def extract_mission_id(path: str) -> str | None:
    """从路径中提取 mission_id，非任务路径返回 None"""
    parts = path.split("/")
    for i, part in enumerate(parts):
        if part in ("missions", "mission") and i + 1 < len(parts):
            candidate = parts[i + 1]
            # 排除 /api/missions/start 这类子路由
            if len(candidate) == _ULID_LENGTH:
                return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 为任务操作绑定 trace_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        mission_id = extract_mission_id(request.url.path)
        if mission_id:
            structlog.contextvars.bind_contextvars(
                trace_id=f"trace-{mission_id}",
                mission_id=mission_id,
            )

        return await call_next(request)
