"""SwarmBoard Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
连接在进程启动时显式创建一次，由调用方负责关闭。
"""

from pathlib import Path

import aiosqlite

from ..config import STORE_TIMEOUT_S
from .event_store import AppendResult, SqliteEventStore
from .mission_store import SqliteMissionStore
from .sqlite_init import init_db
from .transaction import (
    AppendOutcome,
    append_event_and_project,
    apply_projection,
    create_mission_with_events,
    translate_storage_errors,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.mission_store = SqliteMissionStore(conn)
        self.event_store = SqliteEventStore(conn)

    async def close(self) -> None:
        """关闭数据库连接"""
        await self.conn.close()


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path, timeout=STORE_TIMEOUT_S)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteMissionStore",
    "SqliteEventStore",
    "AppendResult",
    "AppendOutcome",
    "init_db",
    "append_event_and_project",
    "apply_projection",
    "create_mission_with_events",
    "translate_storage_errors",
]
