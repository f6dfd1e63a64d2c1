"""ScriptedDriver -- 按默认内容表逐步写入事件的后台驱动

每个任务最多跟踪一个驱动任务。重复启动不会产生重复事件，
因为所有写入都走幂等的 emit_event；跟踪表只是为了少做无用功。
"""

import asyncio

import structlog
from swarmboard.core.config import SCRIPTED_SPEED
from swarmboard.core.exceptions import SwarmboardError
from swarmboard.core.models import TERMINAL_STATES, Provenance
from swarmboard.core.schedule import STEP_SCHEDULE
from swarmboard.core.store import StoreGroup

from .mission_service import MissionService

log = structlog.get_logger()


class ScriptedDriver:
    """脚本驱动器 -- 管理每个任务的后台写入协程"""

    def __init__(
        self,
        store_group: StoreGroup,
        sse_hub=None,
        content_manager=None,
        speed: float = SCRIPTED_SPEED,
    ) -> None:
        """
        Args:
            store_group: Store 实例组
            sse_hub: 可选的事件广播器
            content_manager: 提供默认内容表的降级管理器
            speed: 延迟倍率，2.0 表示两倍速；必须为正数
        """
        if speed <= 0:
            raise ValueError(f"speed must be > 0, got {speed}")
        self._service = MissionService(store_group, sse_hub, content_manager)
        self._speed = speed
        self._tasks: dict[str, asyncio.Task] = {}

    def is_running(self, mission_id: str) -> bool:
        task = self._tasks.get(mission_id)
        return task is not None and not task.done()

    def start(self, mission_id: str, from_step: int = 2) -> bool:
        """为任务启动后台驱动

        Returns:
            True 表示新启动；已有驱动在运行时返回 False
        """
        if self.is_running(mission_id):
            return False
        task = asyncio.create_task(self._run(mission_id, from_step))
        self._tasks[mission_id] = task
        task.add_done_callback(lambda t: self._forget(mission_id, t))
        log.info("scripted_driver_started", mission_id=mission_id, from_step=from_step)
        return True

    def _forget(self, mission_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(mission_id) is task:
            del self._tasks[mission_id]

    async def stop_all(self) -> None:
        """取消所有驱动并等待退出（应用关闭、全量清空时调用）"""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, mission_id: str, from_step: int) -> None:
        default_content = self._service.default_content
        try:
            for entry in STEP_SCHEDULE:
                if entry.step < from_step:
                    continue

                delay_s = default_content.delay_ms_for(entry.step) / 1000 / self._speed
                await asyncio.sleep(delay_s)

                mission = await self._service.get_mission(mission_id)
                if mission.status in TERMINAL_STATES:
                    log.info(
                        "scripted_driver_mission_settled",
                        mission_id=mission_id,
                        status=mission.status,
                    )
                    return

                content = default_content.content_for(
                    entry.step, entry.agent.value, entry.kind.value
                )
                await self._service.emit_event(
                    mission_id,
                    entry.step,
                    entry.agent.value,
                    entry.kind.value,
                    content.summary,
                    content.payload,
                    Provenance.SCRIPTED,
                )
            log.info("scripted_driver_completed", mission_id=mission_id)
        except SwarmboardError as e:
            # 后台任务没有调用方可以接收异常，记录后结束
            log.error(
                "scripted_driver_failed",
                mission_id=mission_id,
                error_code=e.code,
                error=e.message,
            )
        except Exception as e:
            log.error(
                "scripted_driver_crashed",
                mission_id=mission_id,
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
