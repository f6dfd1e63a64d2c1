"""TickEngine -- 每次调用把任务推进恰好一步

流程：
1. 校验并加载任务；非 running 直接返回当前状态
2. next_step = current_step + 1，超出步骤表返回 done
3. 按 Step Schedule 确定 (agent, kind)
4. 该步骤已有事件：返回已有事件（重复/并发/重试的调用都在此吸收）
5. 取最近事件做上下文排序，请求内容生成（失败降级为默认内容）
6. 幂等写入；并发落败方返回胜出方的事件，丢弃自己的生成结果
7. 写入同时更新任务聚合
"""

from datetime import UTC, datetime
from enum import StrEnum

import structlog
from pydantic import BaseModel
from swarmboard.core.config import CONTEXT_EVENTS_LIMIT, RERANK_TOP_K
from swarmboard.core.exceptions import MissionNotFoundError
from swarmboard.core.models import (
    TERMINAL_STATES,
    Event,
    EventKind,
    Mission,
    MissionStatus,
    Provenance,
)
from swarmboard.core.projection import marks_done
from swarmboard.core.schedule import ScheduleEntry, schedule_for, total_steps
from swarmboard.core.store import StoreGroup
from swarmboard.core.store.transaction import (
    append_event_and_project,
    apply_projection,
    translate_storage_errors,
)
from swarmboard.core.validation import ensure_mission_id, new_id
from swarmboard.provider import ContentFallbackManager, GenerationRequest

log = structlog.get_logger()


class TickOutcome(StrEnum):
    """单次 Tick 的结果类型"""

    ADVANCED = "advanced"
    DUPLICATE = "duplicate"
    SETTLED = "settled"


class TickResult(BaseModel):
    """Tick 结果

    - advanced: 新写入了 step 对应的事件
    - duplicate: step 已有事件，返回已落盘的那条
    - settled: 任务已终止或没有下一步，未发生任何写入
    """

    outcome: TickOutcome
    step: int | None = None
    status: MissionStatus
    event: Event | None = None
    provenance: Provenance | None = None


class TickEngine:
    """Tick 推进引擎"""

    def __init__(
        self,
        store_group: StoreGroup,
        content_manager: ContentFallbackManager,
        sse_hub=None,
    ) -> None:
        self._stores = store_group
        self._content = content_manager
        self._sse_hub = sse_hub

    async def tick(self, mission_id: str) -> TickResult:
        """推进一步

        Raises:
            ValidationError: mission_id 非法
            MissionNotFoundError: 任务不存在
            StorageError: 存储失败（协作方失败不会抛出）
        """
        ensure_mission_id(mission_id)

        with translate_storage_errors("load_mission"):
            mission = await self._stores.mission_store.get_mission(mission_id)
        if mission is None:
            raise MissionNotFoundError(mission_id)

        if mission.status in TERMINAL_STATES:
            return TickResult(
                outcome=TickOutcome.SETTLED,
                step=mission.current_step,
                status=mission.status,
            )

        next_step = mission.current_step + 1
        if next_step > total_steps():
            return TickResult(
                outcome=TickOutcome.SETTLED,
                step=mission.current_step,
                status=MissionStatus.DONE,
            )

        entry = schedule_for(next_step)
        if entry is None:
            return TickResult(
                outcome=TickOutcome.SETTLED,
                step=mission.current_step,
                status=mission.status,
            )

        with translate_storage_errors("load_event"):
            existing = await self._stores.event_store.get_event(mission_id, next_step)
        if existing is not None:
            # 聚合落后于事件日志（两次提交之间崩溃）时借此追平
            await apply_projection(
                self._stores.conn, self._stores.mission_store, mission, existing
            )
            log.info(
                "tick_step_already_recorded",
                mission_id=mission_id,
                step=next_step,
            )
            return self._duplicate(mission, existing)

        event = await self._build_event(mission, entry)
        outcome = await append_event_and_project(
            self._stores.conn,
            self._stores.event_store,
            self._stores.mission_store,
            mission,
            event,
        )
        if not outcome.inserted:
            log.info(
                "tick_lost_race",
                mission_id=mission_id,
                step=next_step,
                discarded_provenance=event.provenance,
            )
            return self._duplicate(mission, outcome.event)

        if self._sse_hub:
            await self._sse_hub.broadcast(mission_id, event)

        status = (
            MissionStatus.DONE
            if marks_done(event, mission.status_after_step)
            else mission.status
        )
        log.info(
            "tick_advanced",
            mission_id=mission_id,
            step=next_step,
            total_steps=total_steps(),
            agent=event.agent,
            kind=event.kind,
            provenance=event.provenance,
        )
        return TickResult(
            outcome=TickOutcome.ADVANCED,
            step=next_step,
            status=status,
            event=event,
            provenance=event.provenance,
        )

    async def _build_event(self, mission: Mission, entry: ScheduleEntry) -> Event:
        """组装上下文并生成下一步事件（不落盘）"""
        with translate_storage_errors("load_context"):
            recent = await self._stores.event_store.list_recent_events(
                mission.mission_id, CONTEXT_EVENTS_LIMIT
            )

        documents = [e.describe() for e in recent]
        ranked_context: list[str] = []
        if documents:
            query = f"{mission.title} | next step: {entry.agent} {entry.kind}"
            ranked = await self._content.rank(query, documents, RERANK_TOP_K)
            ranked_context = [documents[i] for i in ranked.indices]

        content = await self._content.generate(
            GenerationRequest(
                mission_title=mission.title,
                step=entry.step,
                agent=entry.agent.value,
                kind=entry.kind.value,
                ranked_context=ranked_context,
            )
        )

        return Event(
            event_id=new_id(),
            mission_id=mission.mission_id,
            ts=datetime.now(UTC),
            step=entry.step,
            agent=entry.agent,
            kind=entry.kind,
            summary=content.summary,
            payload=content.payload,
            provenance=Provenance.FALLBACK if content.is_fallback else Provenance.GENERATED,
            checkpoint_summary=(
                content.checkpoint_summary if entry.kind == EventKind.CHECKPOINT else None
            ),
        )

    @staticmethod
    def _duplicate(mission: Mission, event: Event) -> TickResult:
        status = (
            MissionStatus.DONE
            if marks_done(event, mission.status_after_step)
            else mission.status
        )
        return TickResult(
            outcome=TickOutcome.DUPLICATE,
            step=event.step,
            status=status,
            event=event,
            provenance=event.provenance,
        )
