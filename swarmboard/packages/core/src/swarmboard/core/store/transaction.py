"""事件写入 + Projection 更新封装

幂等追加与聚合更新是两次独立提交：先提交事件，再提交聚合。
两次提交之间崩溃只会让聚合暂时落后（不会出错），
因为聚合更新是单调的，后续事件或 Projection 重建都会把它追平。
"""

import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime

import aiosqlite
import structlog
from pydantic import BaseModel

from ..exceptions import StorageError
from ..models.event import Event
from ..models.mission import Mission
from ..projection import marks_done
from .event_store import AppendResult, SqliteEventStore
from .mission_store import SqliteMissionStore

log = structlog.get_logger()


class AppendOutcome(BaseModel):
    """幂等追加结果：result 为 ALREADY_EXISTS 时 event 是已落盘的那条"""

    result: AppendResult
    event: Event

    @property
    def inserted(self) -> bool:
        return self.result == AppendResult.INSERTED


@contextmanager
def translate_storage_errors(operation: str) -> Iterator[None]:
    """将 SQLite 异常转换为 StorageError（致命但可重试）"""
    try:
        yield
    except sqlite3.Error as e:
        log.error(
            "storage_operation_failed",
            operation=operation,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise StorageError(f"Storage failure during {operation}: {e}", e) from e


async def append_event_and_project(
    conn: aiosqlite.Connection,
    event_store: SqliteEventStore,
    mission_store: SqliteMissionStore,
    mission: Mission,
    event: Event,
) -> AppendOutcome:
    """幂等追加事件，新写入时再更新任务聚合

    Args:
        conn: 数据库连接
        event_store: EventStore 实例
        mission_store: MissionStore 实例
        mission: 事件所属任务（用于 fork 血缘的终态判定）
        event: 要写入的事件

    Returns:
        AppendOutcome；重复 step 时返回已存在的事件并重新应用其聚合效果，
        不视为失败

    Raises:
        StorageError: 存储失败
    """
    with translate_storage_errors("append_event"):
        try:
            result = await event_store.append_event(event)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise

        if result == AppendResult.ALREADY_EXISTS:
            stored = await event_store.get_event(event.mission_id, event.step)
            log.info(
                "event_already_exists",
                mission_id=event.mission_id,
                step=event.step,
            )
            if stored is None:
                return AppendOutcome(result=result, event=event)
            # 聚合可能落后于已落盘的事件（两次提交之间崩溃），重放其效果追平
            await apply_projection(conn, mission_store, mission, stored)
            return AppendOutcome(result=result, event=stored)

        await apply_projection(conn, mission_store, mission, event)

    return AppendOutcome(result=result, event=event)


async def apply_projection(
    conn: aiosqlite.Connection,
    mission_store: SqliteMissionStore,
    mission: Mission,
    event: Event,
) -> None:
    """把单个已落盘事件的折叠效果写入任务聚合（幂等）"""
    with translate_storage_errors("apply_projection"):
        try:
            await mission_store.apply_event_projection(
                event,
                marks_done=marks_done(event, mission.status_after_step),
                updated_at=datetime.now(UTC),
            )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


async def create_mission_with_events(
    conn: aiosqlite.Connection,
    mission_store: SqliteMissionStore,
    event_store: SqliteEventStore,
    mission: Mission,
    events: Sequence[Event],
) -> None:
    """在同一事务内创建任务并写入初始事件（启动种子事件或 fork 复制的事件）

    Raises:
        StorageError: 存储失败，事务整体回滚
    """
    with translate_storage_errors("create_mission"):
        try:
            await mission_store.create_mission(mission)
            for event in events:
                result = await event_store.append_event(event)
                if result != AppendResult.INSERTED:
                    raise sqlite3.IntegrityError(
                        f"step {event.step} already exists for new mission {mission.mission_id}"
                    )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
