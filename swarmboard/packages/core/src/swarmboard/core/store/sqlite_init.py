"""SQLite 数据库初始化

PRAGMA 配置 + 两张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

from ..config import STORE_TIMEOUT_S

# missions 表 DDL
_MISSIONS_DDL = """
CREATE TABLE IF NOT EXISTS missions (
    mission_id            TEXT PRIMARY KEY,
    title                 TEXT NOT NULL DEFAULT '',
    status                TEXT NOT NULL DEFAULT 'running',
    current_step          INTEGER NOT NULL DEFAULT 0,
    created_at            TEXT NOT NULL,
    updated_at            TEXT NOT NULL,
    last_checkpoint_at    TEXT,
    last_checkpoint_step  INTEGER,
    latest_summary        TEXT,
    parent_mission_id     TEXT,
    branch_from_step      INTEGER,
    run_mode              TEXT NOT NULL DEFAULT 'scripted'
);
"""

_MISSIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_missions_created_at ON missions(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_missions_parent ON missions(parent_mission_id);",
]

# events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    event_id            TEXT PRIMARY KEY,
    mission_id          TEXT NOT NULL,
    ts                  TEXT NOT NULL,
    step                INTEGER NOT NULL CHECK (step >= 1),
    agent               TEXT NOT NULL,
    kind                TEXT NOT NULL,
    summary             TEXT NOT NULL DEFAULT '',
    payload             TEXT NOT NULL DEFAULT '{}',
    provenance          TEXT NOT NULL DEFAULT 'scripted',
    checkpoint_summary  TEXT,

    FOREIGN KEY (mission_id) REFERENCES missions(mission_id)
);
"""

_EVENTS_INDEXES = [
    # 任务内 step 唯一约束（幂等写入的唯一依据）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_mission_step ON events(mission_id, step);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute(f"PRAGMA busy_timeout = {int(STORE_TIMEOUT_S * 1000)};")

    # 创建表
    await conn.execute(_MISSIONS_DDL)
    await conn.execute(_EVENTS_DDL)

    # 创建索引
    for idx_sql in _MISSIONS_INDEXES + _EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
