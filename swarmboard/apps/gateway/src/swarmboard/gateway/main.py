"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 连接创建/关闭 + 协作方组件初始化 + 脚本驱动清理 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse
from swarmboard.core.config import dev_routes_enabled, get_db_path
from swarmboard.core.store import create_store_group
from swarmboard.provider import build_content_manager, load_provider_config

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import agents, dev, events, health, missions, stream
from .routes.errors import error_body
from .services.scripted_driver import ScriptedDriver
from .services.sse_hub import SSEHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时创建唯一的数据库连接和服务组件，关闭时依次清理"""
    # 启动：初始化 Store（进程内唯一连接，显式传递给各组件）
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group

    # 初始化 SSEHub
    app.state.sse_hub = SSEHub()

    # 协作方初始化（未配置的协作方直接走降级）
    provider_config = load_provider_config()
    app.state.provider_config = provider_config
    content_manager = build_content_manager(provider_config)
    app.state.content_manager = content_manager

    app.state.scripted_driver = ScriptedDriver(
        store_group,
        app.state.sse_hub,
        content_manager,
    )

    log.info(
        "gateway_started",
        db_path=db_path,
        llm_mode=provider_config.llm_mode,
        generator_configured=content_manager.generator_configured,
        ranker_configured=content_manager.ranker_configured,
        model=provider_config.llm_model,
    )

    yield

    # 关闭：先停后台驱动，再关闭数据库连接
    await app.state.scripted_driver.stop_all()
    await store_group.close()
    log.info("gateway_stopped")


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """请求体/参数格式错误统一返回 400 INVALID_INPUT"""
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in errors
    )
    return JSONResponse(status_code=400, content=error_body("INVALID_INPUT", message))


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="SwarmBoard Gateway",
        version="0.1.0",
        description="SwarmBoard 事件溯源任务看板 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 在最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(missions.router, tags=["missions"])
    app.include_router(events.router, tags=["events"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(agents.router, tags=["agents"])
    app.include_router(health.router, tags=["health"])
    if dev_routes_enabled():
        app.include_router(dev.router, tags=["dev"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
