"""Projection 折叠与重建模块

missions 表是 events 的缓存视图：对任务全部事件重新折叠，
结果必须与当前缓存的聚合一致。apply_event 与事件到达顺序无关，
因此逐条增量更新与按 step 顺序全量折叠得到同一结果。
支持单事件应用、全量折叠、单任务/全量重建以及漂移检测。
"""

import time
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from pydantic import BaseModel

from .models.enums import EventKind, MissionStatus
from .models.event import Event
from .models.mission import Mission, MissionAggregate, MissionArtifacts
from .schedule import terminal_step

if TYPE_CHECKING:
    from .store.event_store import SqliteEventStore
    from .store.mission_store import SqliteMissionStore

log = structlog.get_logger()


def marks_done(event: Event, status_after_step: int = 0) -> bool:
    """事件是否把任务推进到 done

    DONE 类型或终止步骤都算完成；fork 任务只统计分叉点之后的事件。
    """
    if event.step <= status_after_step:
        return False
    return event.kind == EventKind.DONE or event.step == terminal_step()


def apply_event(
    aggregate: MissionAggregate,
    event: Event,
    status_after_step: int = 0,
) -> MissionAggregate:
    """将单个事件应用到聚合（纯函数，返回新对象）

    - current_step 只增不减
    - CHECKPOINT 只覆盖 step 不小于当前 checkpoint 的结果
    - done 为终态；FAIL 不改变状态（后续可能有重试）
    """
    update: dict = {"current_step": max(aggregate.current_step, event.step)}

    if event.kind == EventKind.CHECKPOINT and (
        aggregate.last_checkpoint_step is None
        or aggregate.last_checkpoint_step <= event.step
    ):
        update["last_checkpoint_at"] = event.ts
        update["last_checkpoint_step"] = event.step
        update["artifacts"] = MissionArtifacts(
            latest_summary=event.checkpoint_summary or event.summary
        )

    if marks_done(event, status_after_step):
        update["status"] = MissionStatus.DONE

    return aggregate.model_copy(update=update)


def fold(events: Iterable[Event], status_after_step: int = 0) -> MissionAggregate:
    """按 step 顺序折叠事件序列得到聚合"""
    aggregate = MissionAggregate()
    for event in sorted(events, key=lambda e: e.step):
        aggregate = apply_event(aggregate, event, status_after_step)
    return aggregate


def fold_for_mission(mission: Mission, events: Iterable[Event]) -> MissionAggregate:
    """按任务血缘折叠：fork 任务的终态只由分叉点之后的事件决定"""
    return fold(events, status_after_step=mission.status_after_step)


class ProjectionDrift(BaseModel):
    """缓存聚合与重新折叠结果不一致的任务"""

    mission_id: str
    cached: MissionAggregate
    folded: MissionAggregate


def _keep_manual_status(mission: Mission, aggregate: MissionAggregate) -> MissionAggregate:
    # failed 只能由外部决定，不来自事件；重建时保留
    if mission.status == MissionStatus.FAILED and aggregate.status == MissionStatus.RUNNING:
        return aggregate.model_copy(update={"status": MissionStatus.FAILED})
    return aggregate


async def rebuild_mission(
    conn: aiosqlite.Connection,
    event_store: "SqliteEventStore",
    mission_store: "SqliteMissionStore",
    mission_id: str,
) -> MissionAggregate | None:
    """从事件日志重建单个任务的聚合

    Returns:
        重建后的聚合；任务不存在时返回 None
    """
    mission = await mission_store.get_mission(mission_id)
    if mission is None:
        return None
    events = await event_store.get_events_for_mission(mission_id)
    aggregate = _keep_manual_status(mission, fold_for_mission(mission, events))
    await mission_store.replace_aggregate(mission_id, aggregate, datetime.now(UTC))
    await conn.commit()
    return aggregate


async def rebuild_all(
    conn: aiosqlite.Connection,
    event_store: "SqliteEventStore",
    mission_store: "SqliteMissionStore",
) -> int:
    """从 events 表重建 missions 表的聚合字段

    流程：
    1. 读取所有事件（按 mission_id, step 排序）
    2. 在内存中按任务分组折叠
    3. 覆盖每个任务的聚合字段并提交

    Args:
        conn: 数据库连接
        event_store: EventStore 实例
        mission_store: MissionStore 实例

    Returns:
        处理的事件总数
    """
    start_time = time.monotonic()

    events = await event_store.get_all_events()
    event_count = len(events)

    await log.ainfo(
        "projection_rebuild_started",
        event_count=event_count,
    )

    grouped: dict[str, list[Event]] = {}
    for event in events:
        grouped.setdefault(event.mission_id, []).append(event)

    now = datetime.now(UTC)
    mission_ids = await mission_store.list_mission_ids()
    for mission_id in mission_ids:
        mission = await mission_store.get_mission(mission_id)
        if mission is None:
            continue
        aggregate = _keep_manual_status(
            mission, fold_for_mission(mission, grouped.get(mission_id, []))
        )
        await mission_store.replace_aggregate(mission_id, aggregate, now)

    await conn.commit()

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_rebuild_completed",
        event_count=event_count,
        mission_count=len(mission_ids),
        elapsed_ms=elapsed_ms,
    )

    return event_count


async def find_drift(
    event_store: "SqliteEventStore",
    mission_store: "SqliteMissionStore",
) -> list[ProjectionDrift]:
    """找出缓存聚合与事件折叠结果不一致的任务（只读）"""
    drifts: list[ProjectionDrift] = []
    for mission_id in await mission_store.list_mission_ids():
        mission = await mission_store.get_mission(mission_id)
        if mission is None:
            continue
        events = await event_store.get_events_for_mission(mission_id)
        folded = _keep_manual_status(mission, fold_for_mission(mission, events))
        cached = mission.aggregate()
        if cached != folded:
            drifts.append(
                ProjectionDrift(mission_id=mission_id, cached=cached, folded=folded)
            )
    return drifts
