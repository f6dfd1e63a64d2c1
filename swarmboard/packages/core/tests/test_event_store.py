"""EventStore 幂等追加测试

测试内容：
1. 首次写入返回 INSERTED，重复 step 返回 ALREADY_EXISTS 且不覆盖
2. 并发写入同一 step 只落盘一条
3. list_events / list_recent_events 的排序与上限
4. 写入失败转换为 StorageError
"""

import asyncio
import sqlite3
from unittest.mock import AsyncMock, patch

import pytest
from swarmboard.core.exceptions import StorageError
from swarmboard.core.models import EventKind, Provenance
from swarmboard.core.store import AppendResult, append_event_and_project


class TestAppendEvent:
    async def test_first_append_inserted(self, store_group, create_mission, make_event):
        mission = await create_mission()
        event = make_event(mission.mission_id, 1)

        result = await store_group.event_store.append_event(event)
        await store_group.conn.commit()

        assert result == AppendResult.INSERTED
        stored = await store_group.event_store.get_event(mission.mission_id, 1)
        assert stored == event

    async def test_duplicate_step_keeps_first(self, store_group, create_mission, make_event):
        mission = await create_mission()
        first = make_event(mission.mission_id, 3, summary="first")
        second = make_event(mission.mission_id, 3, summary="second")

        assert await store_group.event_store.append_event(first) == AppendResult.INSERTED
        assert await store_group.event_store.append_event(second) == AppendResult.ALREADY_EXISTS
        await store_group.conn.commit()

        stored = await store_group.event_store.get_event(mission.mission_id, 3)
        assert stored.event_id == first.event_id
        assert stored.summary == "first"

    async def test_same_step_in_other_mission_is_independent(
        self, store_group, create_mission, make_event
    ):
        a = await create_mission()
        b = await create_mission()
        assert await store_group.event_store.append_event(make_event(a.mission_id, 1)) == (
            AppendResult.INSERTED
        )
        assert await store_group.event_store.append_event(make_event(b.mission_id, 1)) == (
            AppendResult.INSERTED
        )

    async def test_payload_and_checkpoint_summary_persisted(
        self, store_group, create_mission, make_event
    ):
        mission = await create_mission()
        event = make_event(
            mission.mission_id,
            6,
            checkpoint_summary="阶段一完成",
            provenance=Provenance.GENERATED,
        )
        await store_group.event_store.append_event(event)
        await store_group.conn.commit()

        stored = await store_group.event_store.get_event(mission.mission_id, 6)
        assert stored.kind == EventKind.CHECKPOINT
        assert stored.payload == {"step": 6}
        assert stored.checkpoint_summary == "阶段一完成"
        assert stored.provenance == Provenance.GENERATED


class TestConcurrentAppend:
    async def test_concurrent_duplicates_persist_exactly_one(
        self, store_group, create_mission, make_event
    ):
        """并发写入同一 (mission_id, step)：恰好一个 INSERTED，其余返回胜出方的事件"""
        mission = await create_mission()
        candidates = [make_event(mission.mission_id, 2, summary=f"writer-{i}") for i in range(8)]

        outcomes = await asyncio.gather(
            *(
                append_event_and_project(
                    store_group.conn,
                    store_group.event_store,
                    store_group.mission_store,
                    mission,
                    event,
                )
                for event in candidates
            )
        )

        inserted = [o for o in outcomes if o.inserted]
        assert len(inserted) == 1
        winner_id = inserted[0].event.event_id
        assert all(o.event.event_id == winner_id for o in outcomes)

        events = await store_group.event_store.list_events(mission.mission_id)
        assert len(events) == 1
        refreshed = await store_group.mission_store.get_mission(mission.mission_id)
        assert refreshed.current_step == 2


class TestListEvents:
    async def _seed(self, store_group, mission_id, make_event, steps):
        # 乱序写入，验证读取按 step 排序
        for step in steps:
            await store_group.event_store.append_event(make_event(mission_id, step))
        await store_group.conn.commit()

    async def test_ascending_order(self, store_group, create_mission, make_event):
        mission = await create_mission()
        await self._seed(store_group, mission.mission_id, make_event, [5, 1, 3, 2, 4])

        events = await store_group.event_store.list_events(mission.mission_id)
        assert [e.step for e in events] == [1, 2, 3, 4, 5]

    async def test_max_step_and_limit(self, store_group, create_mission, make_event):
        mission = await create_mission()
        await self._seed(store_group, mission.mission_id, make_event, range(1, 11))

        capped = await store_group.event_store.list_events(mission.mission_id, max_step=4)
        assert [e.step for e in capped] == [1, 2, 3, 4]

        limited = await store_group.event_store.list_events(mission.mission_id, limit=3)
        assert [e.step for e in limited] == [1, 2, 3]

    async def test_recent_events_window(self, store_group, create_mission, make_event):
        mission = await create_mission()
        await self._seed(store_group, mission.mission_id, make_event, range(1, 11))

        recent = await store_group.event_store.list_recent_events(mission.mission_id, 3)
        assert [e.step for e in recent] == [8, 9, 10]

    async def test_unknown_mission_returns_empty(self, store_group):
        assert await store_group.event_store.list_events("01J00000000000000000000000") == []


class TestStorageErrors:
    async def test_sqlite_error_becomes_storage_error(
        self, store_group, create_mission, make_event
    ):
        mission = await create_mission()
        failing = AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))

        with patch.object(store_group.event_store, "append_event", failing):
            with pytest.raises(StorageError) as exc_info:
                await append_event_and_project(
                    store_group.conn,
                    store_group.event_store,
                    store_group.mission_store,
                    mission,
                    make_event(mission.mission_id, 1),
                )

        assert exc_info.value.retryable
        assert exc_info.value.code == "STORAGE_UNAVAILABLE"
        assert isinstance(exc_info.value.original_error, sqlite3.OperationalError)
