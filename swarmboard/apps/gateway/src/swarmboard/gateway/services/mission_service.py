"""MissionService -- 任务创建/写入/查询业务逻辑

对外暴露的操作：start、get_mission_with_events、emit_event、tick、fork、list_missions，
以及开发环境使用的 reset。所有输入在写入前校验，非法输入不会产生任何持久化副作用。
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel
from swarmboard.core.config import DEFAULT_MISSION_TITLE, EVENT_LIST_LIMIT, MISSION_LIST_LIMIT
from swarmboard.core.exceptions import MissionNotFoundError, ValidationError
from swarmboard.core.models import (
    AgentRole,
    Event,
    EventKind,
    Mission,
    MissionWithEvents,
    Provenance,
    RunMode,
)
from swarmboard.core.projection import fold
from swarmboard.core.schedule import schedule_for
from swarmboard.core.store import StoreGroup
from swarmboard.core.store.transaction import (
    append_event_and_project,
    create_mission_with_events,
    translate_storage_errors,
)
from swarmboard.core.validation import ensure_mission_id, ensure_step, new_id, parse_enum
from swarmboard.provider import ContentFallbackManager, DefaultContentProvider

from .fork_engine import ForkEngine
from .tick_engine import TickEngine, TickResult

log = structlog.get_logger()


class EmitOutcome(StrEnum):
    """外部写入事件的结果"""

    ACCEPTED = "accepted"
    ALREADY_EXISTS = "already_exists"


class EmitResult(BaseModel):
    """emit_event 结果：already_exists 时 event 为已落盘的那条"""

    outcome: EmitOutcome
    event: Event

    @property
    def accepted(self) -> bool:
        return self.outcome == EmitOutcome.ACCEPTED


class ResetResult(BaseModel):
    """全量清空结果"""

    missions: int
    events: int


class MissionService:
    """任务业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        sse_hub=None,
        content_manager: ContentFallbackManager | None = None,
    ) -> None:
        self._stores = store_group
        self._sse_hub = sse_hub
        self._content = content_manager or ContentFallbackManager()

    @property
    def default_content(self) -> DefaultContentProvider:
        return self._content.default_content

    async def start(self, run_mode: str = RunMode.SCRIPTED, title: str | None = None) -> str:
        """创建任务并写入第 1 步 PLAN 事件（同一事务）

        Returns:
            新任务 ID
        """
        mode = parse_enum(RunMode, run_mode, "run_mode")
        if title is not None and not title.strip():
            raise ValidationError("title must not be blank")

        entry = schedule_for(1)
        now = datetime.now(UTC)
        mission_id = new_id()

        content = self.default_content.content_for(1, entry.agent.value, entry.kind.value)
        seed = Event(
            event_id=new_id(),
            mission_id=mission_id,
            ts=now,
            step=1,
            agent=entry.agent,
            kind=entry.kind,
            summary=content.summary,
            payload=content.payload,
            provenance=Provenance.SCRIPTED,
        )

        mission = Mission(
            mission_id=mission_id,
            title=title.strip() if title else DEFAULT_MISSION_TITLE,
            created_at=now,
            updated_at=now,
            run_mode=mode,
        ).with_aggregate(fold([seed]))

        await create_mission_with_events(
            self._stores.conn,
            self._stores.mission_store,
            self._stores.event_store,
            mission,
            [seed],
        )

        log.info("mission_started", mission_id=mission_id, run_mode=mode)

        if self._sse_hub:
            await self._sse_hub.broadcast(mission_id, seed)

        return mission_id

    async def get_mission(self, mission_id: str) -> Mission:
        """查询任务

        Raises:
            ValidationError / MissionNotFoundError / StorageError
        """
        ensure_mission_id(mission_id)
        with translate_storage_errors("get_mission"):
            mission = await self._stores.mission_store.get_mission(mission_id)
        if mission is None:
            raise MissionNotFoundError(mission_id)
        return mission

    async def get_mission_with_events(self, mission_id: str) -> MissionWithEvents:
        """任务详情 + 按 step 升序的事件（最多 EVENT_LIST_LIMIT 条）"""
        mission = await self.get_mission(mission_id)
        with translate_storage_errors("list_events"):
            events = await self._stores.event_store.list_events(
                mission_id, limit=EVENT_LIST_LIMIT
            )
        return MissionWithEvents(mission=mission, events=events)

    async def emit_event(
        self,
        mission_id: str,
        step: int,
        agent: str,
        kind: str,
        summary: str,
        payload: dict[str, Any] | None = None,
        provenance: str = Provenance.SCRIPTED,
    ) -> EmitResult:
        """幂等写入外部提供的事件

        同一 step 重复写入返回 already_exists 和已落盘的事件，不视为错误。
        """
        ensure_mission_id(mission_id)
        ensure_step(step)
        agent_role = parse_enum(AgentRole, agent, "agent")
        event_kind = parse_enum(EventKind, kind, "kind")
        source = parse_enum(Provenance, provenance, "provenance")
        if not isinstance(summary, str) or not summary.strip():
            raise ValidationError("summary is required")
        if payload is not None and not isinstance(payload, dict):
            raise ValidationError("payload must be an object")

        mission = await self.get_mission(mission_id)

        event = Event(
            event_id=new_id(),
            mission_id=mission_id,
            ts=datetime.now(UTC),
            step=step,
            agent=agent_role,
            kind=event_kind,
            summary=summary,
            payload=payload or {},
            provenance=source,
        )
        outcome = await append_event_and_project(
            self._stores.conn,
            self._stores.event_store,
            self._stores.mission_store,
            mission,
            event,
        )

        if not outcome.inserted:
            return EmitResult(outcome=EmitOutcome.ALREADY_EXISTS, event=outcome.event)

        log.info(
            "event_emitted",
            mission_id=mission_id,
            step=step,
            kind=event_kind,
            provenance=source,
        )
        if self._sse_hub:
            await self._sse_hub.broadcast(mission_id, event)
        return EmitResult(outcome=EmitOutcome.ACCEPTED, event=event)

    async def tick(self, mission_id: str) -> TickResult:
        """推进一步，见 TickEngine"""
        engine = TickEngine(self._stores, self._content, self._sse_hub)
        return await engine.tick(mission_id)

    async def fork(self, parent_mission_id: str, fork_step: int) -> str:
        """分叉任务，见 ForkEngine"""
        return await ForkEngine(self._stores).fork(parent_mission_id, fork_step)

    async def list_missions(self, limit: int = MISSION_LIST_LIMIT) -> list[Mission]:
        """最近创建的任务，按 created_at 倒序，最多 MISSION_LIST_LIMIT 条"""
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be an integer >= 1")
        with translate_storage_errors("list_missions"):
            return await self._stores.mission_store.list_missions(
                min(limit, MISSION_LIST_LIMIT)
            )

    async def reset(self) -> ResetResult:
        """清空所有任务和事件（管理性操作，仅开发环境暴露）"""
        with translate_storage_errors("reset"):
            try:
                events = await self._stores.event_store.delete_all()
                missions = await self._stores.mission_store.delete_all()
                await self._stores.conn.commit()
            except Exception:
                await self._stores.conn.rollback()
                raise
        log.warning("store_wiped", missions=missions, events=events)
        return ResetResult(missions=missions, events=events)
