"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from swarmboard.core.models import (
    AgentRole,
    Event,
    EventKind,
    Mission,
    MissionLineage,
    Provenance,
)
from swarmboard.core.schedule import schedule_for
from swarmboard.core.store import StoreGroup, create_store_group
from swarmboard.core.store.sqlite_init import init_db
from swarmboard.core.validation import new_id

_BASE_TS = datetime(2026, 1, 1, tzinfo=UTC)


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "sqlite" / "core_test.db"


@pytest_asyncio.fixture
async def store_group(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """核心层已初始化的 StoreGroup"""
    group = await create_store_group(str(core_db_path))
    yield group
    await group.close()


@pytest_asyncio.fixture
async def db_conn(core_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """只执行过 init_db 的裸连接（用于表结构与约束测试）"""
    core_db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(str(core_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """按步骤表构造事件（agent/kind 默认取自步骤表）"""

    def _make(
        mission_id: str,
        step: int,
        kind: EventKind | None = None,
        summary: str | None = None,
        checkpoint_summary: str | None = None,
        provenance: Provenance = Provenance.SCRIPTED,
    ) -> Event:
        entry = schedule_for(step)
        return Event(
            event_id=new_id(),
            mission_id=mission_id,
            ts=_BASE_TS + timedelta(seconds=step),
            step=step,
            agent=entry.agent if entry else AgentRole.EXECUTOR,
            kind=kind or (entry.kind if entry else EventKind.NOTE),
            summary=summary or f"step {step}",
            payload={"step": step},
            provenance=provenance,
            checkpoint_summary=checkpoint_summary,
        )

    return _make


@pytest.fixture
def create_mission(store_group: StoreGroup):
    """在存储中创建一个空任务（current_step=0）"""

    async def _create(
        title: str = "测试任务",
        lineage: MissionLineage | None = None,
    ) -> Mission:
        now = datetime.now(UTC)
        mission = Mission(
            mission_id=new_id(),
            title=title,
            created_at=now,
            updated_at=now,
            lineage=lineage,
        )
        await store_group.mission_store.create_mission(mission)
        await store_group.conn.commit()
        return mission

    return _create
