"""事件写入路由

POST /api/events/emit: 幂等写入外部提供的事件。
- 新写入返回 201 + outcome=accepted
- 该 step 已有事件返回 200 + outcome=already_exists（附已落盘的事件）
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from swarmboard.core.exceptions import SwarmboardError
from swarmboard.core.models import Provenance

from ..deps import get_mission_service
from ..services.mission_service import MissionService
from .errors import error_response

router = APIRouter()


class EmitEventRequest(BaseModel):
    """事件写入请求体"""

    mission_id: str = Field(description="任务 ID")
    step: int = Field(description="步骤号（>=1）")
    agent: str = Field(description="Planner / Researcher / Executor / Critic")
    kind: str = Field(description="事件类型，如 PLAN、CHECKPOINT、DONE")
    summary: str = Field(description="简短摘要")
    payload: dict[str, Any] | None = Field(default=None, description="结构化数据")
    provenance: str = Field(default=Provenance.SCRIPTED, description="内容来源")


@router.post("/api/events/emit")
async def emit_event(
    body: EmitEventRequest,
    service: MissionService = Depends(get_mission_service),
):
    """写入事件；重复 step 不是错误"""
    try:
        result = await service.emit_event(
            body.mission_id,
            body.step,
            body.agent,
            body.kind,
            body.summary,
            body.payload,
            body.provenance,
        )
    except SwarmboardError as e:
        return error_response(e)

    return JSONResponse(
        status_code=201 if result.accepted else 200,
        content=result.model_dump(mode="json"),
    )
