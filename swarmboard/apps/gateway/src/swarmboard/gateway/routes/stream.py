"""SSE 事件流路由

GET /api/stream/mission/{mission_id}: 实时推送。
    先订阅 SSEHub，再推送已持久化的事件，之后推送新事件；
    因此客户端从回放切回实时流时总是从存储中的当前状态开始。
GET /api/missions/{mission_id}/replay: 回放。
    请求时从存储取一次快照，按速度逐个推送，与实时流互不干扰。
"""

import asyncio
import json

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse
from swarmboard.core.config import SSE_HEARTBEAT_INTERVAL
from swarmboard.core.exceptions import SwarmboardError
from swarmboard.core.models import TERMINAL_STATES
from swarmboard.core.models.event import Event
from swarmboard.core.projection import marks_done
from swarmboard.core.replay import ReplayEngine

from ..deps import get_mission_service, get_sse_hub
from ..services.mission_service import MissionService
from ..services.sse_hub import SSEHub
from .errors import error_response

router = APIRouter()


def _event_to_sse(event: Event, **extra) -> dict:
    """将 Event 模型转换为 SSE 消息"""
    data = event.model_dump(mode="json")
    data.update(extra)
    return {
        "id": event.event_id,
        "event": event.kind.value,
        "data": json.dumps(data, ensure_ascii=False),
    }


@router.get("/api/stream/mission/{mission_id}")
async def stream_mission_events(
    mission_id: str,
    service: MissionService = Depends(get_mission_service),
    sse_hub: SSEHub = Depends(get_sse_hub),
):
    """实时事件流

    1. 订阅 SSEHub（先订阅，避免读取历史与订阅之间漏掉事件）
    2. 推送已持久化的事件
    3. 推送新事件（跳过已推送过的 step）
    4. 终态事件携带 final: true 后结束
    5. 心跳保活
    """
    try:
        mission = await service.get_mission(mission_id)
    except SwarmboardError as e:
        return error_response(e)

    status_after_step = mission.status_after_step

    async def event_generator():
        queue = await sse_hub.subscribe(mission_id)
        try:
            detail = await service.get_mission_with_events(mission_id)
            sent_steps: set[int] = set()
            for event in detail.events:
                sent_steps.add(event.step)
                yield _event_to_sse(event, final=marks_done(event, status_after_step))

            if detail.mission.status in TERMINAL_STATES:
                return

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
                    continue

                if event.step in sent_steps:
                    continue
                sent_steps.add(event.step)
                is_final = marks_done(event, status_after_step)
                yield _event_to_sse(event, final=is_final)
                if is_final:
                    return
        finally:
            await sse_hub.unsubscribe(mission_id, queue)

    return EventSourceResponse(event_generator())


@router.get("/api/missions/{mission_id}/replay")
async def replay_mission(
    mission_id: str,
    start_from_checkpoint: bool = Query(default=False, description="从最后一个 CHECKPOINT 开始"),
    speed: float = Query(default=1.0, description="速度倍率，必须 > 0"),
    service: MissionService = Depends(get_mission_service),
):
    """按速度回放任务的事件快照（只读）"""
    try:
        detail = await service.get_mission_with_events(mission_id)
        engine = ReplayEngine(
            detail.events,
            start_from_checkpoint=start_from_checkpoint,
            speed=speed,
        )
    except SwarmboardError as e:
        return error_response(e)

    async def event_generator():
        yield {
            "event": "replay_started",
            "data": json.dumps(
                {
                    "mission_id": mission_id,
                    "total": len(engine.snapshot),
                    "start_offset": engine.start_offset,
                    "interval_s": engine.interval_s,
                    "revealed": [e.model_dump(mode="json") for e in engine.revealed],
                },
                ensure_ascii=False,
            ),
        }
        async for event in engine.play():
            yield _event_to_sse(event, revealed_count=engine.revealed_count)
        yield {
            "event": "replay_finished",
            "data": json.dumps({"mission_id": mission_id, "revealed_count": engine.revealed_count}),
        }

    return EventSourceResponse(event_generator())

