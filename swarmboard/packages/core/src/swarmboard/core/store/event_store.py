"""EventStore SQLite 实现

事件表 append-only：只允许插入，不允许更新。
(mission_id, step) 唯一；重复写入返回 ALREADY_EXISTS 而不是抛出异常。
"""

import json
from datetime import datetime
from enum import StrEnum

import aiosqlite

from ..config import EVENT_LIST_LIMIT
from ..models.enums import AgentRole, EventKind, Provenance
from ..models.event import Event

_COLUMNS = (
    "event_id, mission_id, ts, step, agent, kind, summary, payload, "
    "provenance, checkpoint_summary"
)


class AppendResult(StrEnum):
    """幂等追加的结果"""

    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: Event) -> AppendResult:
        """幂等追加事件

        冲突由唯一索引在语句级别判定，不抛异常、不回滚，
        因此共享连接上的其他未提交写入不受影响。

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        cursor = await self._conn.execute(
            f"""
            INSERT INTO events ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(mission_id, step) DO NOTHING
            """,
            (
                event.event_id,
                event.mission_id,
                event.ts.isoformat(),
                event.step,
                event.agent.value,
                event.kind.value,
                event.summary,
                json.dumps(event.payload, ensure_ascii=False),
                event.provenance.value,
                event.checkpoint_summary,
            ),
        )
        if cursor.rowcount == 0:
            return AppendResult.ALREADY_EXISTS
        return AppendResult.INSERTED

    async def get_event(self, mission_id: str, step: int) -> Event | None:
        """查询指定任务指定步骤的事件"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM events WHERE mission_id = ? AND step = ?",
            (mission_id, step),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    async def list_events(
        self,
        mission_id: str,
        max_step: int | None = None,
        limit: int = EVENT_LIST_LIMIT,
    ) -> list[Event]:
        """查询任务事件，按 step 升序，最多 limit 条"""
        if max_step is not None:
            cursor = await self._conn.execute(
                f"""
                SELECT {_COLUMNS} FROM events
                WHERE mission_id = ? AND step <= ?
                ORDER BY step ASC LIMIT ?
                """,
                (mission_id, max_step, limit),
            )
        else:
            cursor = await self._conn.execute(
                f"""
                SELECT {_COLUMNS} FROM events
                WHERE mission_id = ?
                ORDER BY step ASC LIMIT ?
                """,
                (mission_id, limit),
            )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_recent_events(self, mission_id: str, limit: int) -> list[Event]:
        """查询最近 limit 条事件（按 step 升序返回）"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM events
            WHERE mission_id = ?
            ORDER BY step DESC LIMIT ?
            """,
            (mission_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in reversed(rows)]

    async def get_events_for_mission(self, mission_id: str) -> list[Event]:
        """查询任务全部事件，按 step 升序（仅用于 Projection 重建和校验）"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM events WHERE mission_id = ? ORDER BY step ASC",
            (mission_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_all_events(self) -> list[Event]:
        """查询所有事件，按 mission_id 和 step 排序（用于 Projection 重建）"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM events ORDER BY mission_id, step ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def delete_all(self) -> int:
        """清空事件表（仅供管理性重置使用），返回删除条数"""
        cursor = await self._conn.execute("DELETE FROM events")
        return cursor.rowcount

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> Event:
        """将数据库行转换为 Event 模型"""
        payload = json.loads(row[7]) if row[7] else {}
        return Event(
            event_id=row[0],
            mission_id=row[1],
            ts=datetime.fromisoformat(row[2]),
            step=row[3],
            agent=AgentRole(row[4]),
            kind=EventKind(row[5]),
            summary=row[6],
            payload=payload,
            provenance=Provenance(row[8]),
            checkpoint_summary=row[9],
        )
