"""任务路由

POST /api/missions/start: 创建任务并写入第 1 步事件（可选启动脚本驱动）。
GET  /api/missions: 最近创建的任务列表。
GET  /api/missions/{mission_id}: 任务详情 + 有界事件列表。
POST /api/missions/{mission_id}/tick: 推进一步。
POST /api/missions/{mission_id}/fork: 从指定 step 分叉出新任务。
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from swarmboard.core.config import DEFAULT_MISSION_TITLE, MISSION_LIST_LIMIT
from swarmboard.core.exceptions import SwarmboardError
from swarmboard.core.models import RunMode

from ..deps import get_mission_service, get_scripted_driver
from ..services.mission_service import MissionService
from ..services.scripted_driver import ScriptedDriver
from .errors import error_response

router = APIRouter()


class StartMissionRequest(BaseModel):
    """创建任务请求体"""

    run_mode: str = Field(default=RunMode.SCRIPTED, description="scripted / generated")
    title: str | None = Field(default=None, description=f"默认 {DEFAULT_MISSION_TITLE!r}")
    auto_drive: bool = Field(
        default=False,
        description="scripted 任务是否立即启动后台脚本驱动",
    )


class StartMissionResponse(BaseModel):
    mission_id: str
    run_mode: str
    auto_drive: bool


class ForkRequest(BaseModel):
    """分叉请求体"""

    fork_step: int = Field(description="分叉点（含），超出历史时下调到实际最大 step")


class ForkResponse(BaseModel):
    mission_id: str
    parent_mission_id: str
    branch_from_step: int


@router.post("/api/missions/start")
async def start_mission(
    body: StartMissionRequest | None = None,
    service: MissionService = Depends(get_mission_service),
    driver: ScriptedDriver = Depends(get_scripted_driver),
):
    """创建任务，返回 201"""
    body = body or StartMissionRequest()
    try:
        mission_id = await service.start(body.run_mode, body.title)
    except SwarmboardError as e:
        return error_response(e)

    auto_drive = body.auto_drive and body.run_mode == RunMode.SCRIPTED
    if auto_drive:
        driver.start(mission_id)

    return JSONResponse(
        status_code=201,
        content=StartMissionResponse(
            mission_id=mission_id,
            run_mode=body.run_mode,
            auto_drive=auto_drive,
        ).model_dump(),
    )


@router.get("/api/missions")
async def list_missions(
    limit: int = Query(default=MISSION_LIST_LIMIT, ge=1, le=MISSION_LIST_LIMIT),
    service: MissionService = Depends(get_mission_service),
):
    """查询任务列表，按 created_at 倒序"""
    try:
        missions = await service.list_missions(limit)
    except SwarmboardError as e:
        return error_response(e)
    return {"missions": [m.model_dump(mode="json") for m in missions]}


@router.get("/api/missions/{mission_id}")
async def get_mission(
    mission_id: str,
    service: MissionService = Depends(get_mission_service),
):
    """查询任务详情，包含按 step 升序的事件"""
    try:
        detail = await service.get_mission_with_events(mission_id)
    except SwarmboardError as e:
        return error_response(e)
    return detail.model_dump(mode="json")


@router.post("/api/missions/{mission_id}/tick")
async def tick_mission(
    mission_id: str,
    service: MissionService = Depends(get_mission_service),
):
    """推进一步：advanced / duplicate / settled 都是成功结果"""
    try:
        result = await service.tick(mission_id)
    except SwarmboardError as e:
        return error_response(e)
    return result.model_dump(mode="json")


@router.post("/api/missions/{mission_id}/fork")
async def fork_mission(
    mission_id: str,
    body: ForkRequest,
    service: MissionService = Depends(get_mission_service),
):
    """从 fork_step 分叉，返回 201"""
    try:
        new_mission_id = await service.fork(mission_id, body.fork_step)
        forked = await service.get_mission(new_mission_id)
    except SwarmboardError as e:
        return error_response(e)

    return JSONResponse(
        status_code=201,
        content=ForkResponse(
            mission_id=new_mission_id,
            parent_mission_id=mission_id,
            branch_from_step=forked.lineage.branch_from_step,
        ).model_dump(),
    )
