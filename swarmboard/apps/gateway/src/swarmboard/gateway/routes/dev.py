"""开发用路由 -- 仅在 SWARMBOARD_ENABLE_DEV_ROUTES=true 时注册

POST /api/dev/reset: 停止所有脚本驱动并清空任务和事件。
"""

from fastapi import APIRouter, Depends
from swarmboard.core.exceptions import SwarmboardError

from ..deps import get_mission_service, get_scripted_driver
from ..services.mission_service import MissionService
from ..services.scripted_driver import ScriptedDriver
from .errors import error_response

router = APIRouter()


@router.post("/api/dev/reset")
async def reset(
    service: MissionService = Depends(get_mission_service),
    driver: ScriptedDriver = Depends(get_scripted_driver),
):
    """全量清空"""
    await driver.stop_all()
    try:
        deleted = await service.reset()
    except SwarmboardError as e:
        return error_response(e)
    return {"ok": True, "deleted": deleted.model_dump()}
