"""MissionStore SQLite 实现

missions 表是 events 的物化视图（projection）缓存。
聚合字段只通过事件写入的副作用更新，且更新语句是单调的：
current_step 只增不减、checkpoint 只被更大的 step 覆盖、状态只会被推进到 done。
"""

from datetime import datetime

import aiosqlite

from ..config import MISSION_LIST_LIMIT
from ..models.enums import EventKind, MissionStatus, RunMode
from ..models.event import Event
from ..models.mission import (
    Mission,
    MissionAggregate,
    MissionArtifacts,
    MissionLineage,
)

_COLUMNS = (
    "mission_id, title, status, current_step, created_at, updated_at, "
    "last_checkpoint_at, last_checkpoint_step, latest_summary, "
    "parent_mission_id, branch_from_step, run_mode"
)

_APPLY_EVENT_SQL = """
UPDATE missions
SET current_step = MAX(current_step, :step),
    updated_at = :updated_at,
    status = CASE WHEN :marks_done THEN 'done' ELSE status END,
    last_checkpoint_at = CASE
        WHEN :is_checkpoint AND (last_checkpoint_step IS NULL OR last_checkpoint_step <= :step)
        THEN :ts ELSE last_checkpoint_at END,
    latest_summary = CASE
        WHEN :is_checkpoint AND (last_checkpoint_step IS NULL OR last_checkpoint_step <= :step)
        THEN :checkpoint_summary ELSE latest_summary END,
    last_checkpoint_step = CASE
        WHEN :is_checkpoint AND (last_checkpoint_step IS NULL OR last_checkpoint_step <= :step)
        THEN :step ELSE last_checkpoint_step END
WHERE mission_id = :mission_id
"""


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SqliteMissionStore:
    """MissionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_mission(self, mission: Mission) -> None:
        """创建任务记录"""
        lineage = mission.lineage
        await self._conn.execute(
            f"""
            INSERT INTO missions ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                mission.mission_id,
                mission.title,
                mission.status.value,
                mission.current_step,
                mission.created_at.isoformat(),
                mission.updated_at.isoformat(),
                _iso(mission.last_checkpoint_at),
                mission.last_checkpoint_step,
                mission.artifacts.latest_summary,
                lineage.parent_mission_id if lineage else None,
                lineage.branch_from_step if lineage else None,
                mission.run_mode.value,
            ),
        )

    async def get_mission(self, mission_id: str) -> Mission | None:
        """根据 mission_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM missions WHERE mission_id = ?",
            (mission_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_mission(row)

    async def list_missions(self, limit: int = MISSION_LIST_LIMIT) -> list[Mission]:
        """查询任务列表，按 created_at 倒序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM missions ORDER BY created_at DESC, mission_id DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_mission(row) for row in rows]

    async def list_mission_ids(self) -> list[str]:
        """全部任务 ID（用于 Projection 重建）"""
        cursor = await self._conn.execute("SELECT mission_id FROM missions ORDER BY mission_id")
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def apply_event_projection(
        self,
        event: Event,
        marks_done: bool,
        updated_at: datetime,
    ) -> None:
        """将单个事件的折叠效果写入缓存（仅通过事件写入触发调用）

        语句是幂等且与顺序无关的，重复或乱序应用不会让聚合回退。
        """
        await self._conn.execute(
            _APPLY_EVENT_SQL,
            {
                "mission_id": event.mission_id,
                "step": event.step,
                "updated_at": updated_at.isoformat(),
                "marks_done": int(marks_done),
                "is_checkpoint": int(event.kind == EventKind.CHECKPOINT),
                "ts": event.ts.isoformat(),
                "checkpoint_summary": event.checkpoint_summary or event.summary,
            },
        )

    async def replace_aggregate(
        self,
        mission_id: str,
        aggregate: MissionAggregate,
        updated_at: datetime,
    ) -> None:
        """用重新折叠的结果覆盖聚合字段（Projection 重建）"""
        await self._conn.execute(
            """
            UPDATE missions
            SET status = ?, current_step = ?, last_checkpoint_at = ?,
                last_checkpoint_step = ?, latest_summary = ?, updated_at = ?
            WHERE mission_id = ?
            """,
            (
                aggregate.status.value,
                aggregate.current_step,
                _iso(aggregate.last_checkpoint_at),
                aggregate.last_checkpoint_step,
                aggregate.artifacts.latest_summary,
                updated_at.isoformat(),
                mission_id,
            ),
        )

    async def delete_all(self) -> int:
        """清空任务表（仅供管理性重置使用），返回删除条数"""
        cursor = await self._conn.execute("DELETE FROM missions")
        return cursor.rowcount

    @staticmethod
    def _row_to_mission(row: aiosqlite.Row) -> Mission:
        """将数据库行转换为 Mission 模型"""
        lineage = None
        if row[9] is not None:
            lineage = MissionLineage(parent_mission_id=row[9], branch_from_step=row[10])
        return Mission(
            mission_id=row[0],
            title=row[1],
            status=MissionStatus(row[2]),
            current_step=row[3],
            created_at=datetime.fromisoformat(row[4]),
            updated_at=datetime.fromisoformat(row[5]),
            last_checkpoint_at=datetime.fromisoformat(row[6]) if row[6] else None,
            last_checkpoint_step=row[7],
            artifacts=MissionArtifacts(latest_summary=row[8]),
            lineage=lineage,
            run_mode=RunMode(row[11]),
        )
