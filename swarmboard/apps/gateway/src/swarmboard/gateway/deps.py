"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 实例和服务

所有实例通过 app.state 管理，在 lifespan 中初始化/清理，不使用全局句柄。
"""

from fastapi import Depends, Request
from swarmboard.core.store import StoreGroup
from swarmboard.provider import ContentFallbackManager

from .services.mission_service import MissionService
from .services.scripted_driver import ScriptedDriver
from .services.sse_hub import SSEHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_content_manager(request: Request) -> ContentFallbackManager:
    """从 app.state 获取协作方降级管理器"""
    return request.app.state.content_manager


def get_scripted_driver(request: Request) -> ScriptedDriver:
    """从 app.state 获取脚本驱动器"""
    return request.app.state.scripted_driver


def get_mission_service(
    store_group: StoreGroup = Depends(get_store_group),
    sse_hub: SSEHub = Depends(get_sse_hub),
    content_manager: ContentFallbackManager = Depends(get_content_manager),
) -> MissionService:
    """按请求构造 MissionService"""
    return MissionService(store_group, sse_hub, content_manager)
