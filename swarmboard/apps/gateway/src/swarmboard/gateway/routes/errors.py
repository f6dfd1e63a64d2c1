"""错误响应 -- 统一的 {"error": {"code", "message"}} 结构

调用方据此区分：输入非法（400）、不存在（404）、暂时性存储故障（503，可重试）。
"""

from starlette.responses import JSONResponse
from swarmboard.core.exceptions import (
    MissionNotFoundError,
    NotForkableError,
    StorageError,
    SwarmboardError,
    ValidationError,
)

_STATUS_CODES: dict[type[SwarmboardError], int] = {
    ValidationError: 400,
    NotForkableError: 400,
    MissionNotFoundError: 404,
    StorageError: 503,
}


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def error_response(error: SwarmboardError) -> JSONResponse:
    """将 Core 异常转换为 HTTP 错误响应"""
    status_code = 500
    for error_type, code in _STATUS_CODES.items():
        if isinstance(error, error_type):
            status_code = code
            break

    headers = {"Retry-After": "1"} if error.retryable else None
    return JSONResponse(
        status_code=status_code,
        content=error_body(error.code, error.message),
        headers=headers,
    )
