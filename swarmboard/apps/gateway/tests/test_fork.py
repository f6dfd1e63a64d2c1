"""ForkEngine 测试

测试内容：
1. fork 点超出历史时下调到实际最大 step（20 -> 13），继承 step 13 的 checkpoint
2. 复制的事件有新 ID，其余字段不变；新任务从 running 开始
3. 分叉后两条血缘互不影响
4. 已完成任务的 fork 仍为 running
5. 非法参数 400、父任务不存在 404、无可复制事件 NOT_FORKABLE
"""

from datetime import UTC, datetime

import pytest
from httpx import AsyncClient
from swarmboard.core.exceptions import NotForkableError
from swarmboard.core.models import Mission, MissionStatus
from swarmboard.core.projection import find_drift
from swarmboard.core.validation import new_id
from swarmboard.gateway.services.fork_engine import ForkEngine
from swarmboard.provider import DEFAULT_SCRIPT


async def _fork(client: AsyncClient, mission_id: str, fork_step) -> dict:
    resp = await client.post(f"/api/missions/{mission_id}/fork", json={"fork_step": fork_step})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestForkApi:
    async def test_fork_beyond_history_is_clamped(
        self, client: AsyncClient, start_mission, tick_until
    ):
        parent_id = await start_mission("generated")
        await tick_until(parent_id, 13)

        forked = await _fork(client, parent_id, 20)
        assert forked["parent_mission_id"] == parent_id
        assert forked["branch_from_step"] == 13

        parent = (await client.get(f"/api/missions/{parent_id}")).json()
        child = (await client.get(f"/api/missions/{forked['mission_id']}")).json()

        mission = child["mission"]
        assert mission["title"] == "AI Trends Research Mission (fork)"
        assert mission["status"] == "running"
        assert mission["run_mode"] == "generated"
        assert mission["current_step"] == 13
        assert mission["last_checkpoint_step"] == 13
        assert mission["artifacts"]["latest_summary"] == DEFAULT_SCRIPT[13].summary
        assert mission["lineage"] == {"parent_mission_id": parent_id, "branch_from_step": 13}

        assert len(child["events"]) == 13
        for original, copy in zip(parent["events"], child["events"], strict=True):
            assert copy["event_id"] != original["event_id"]
            assert copy["mission_id"] == forked["mission_id"]
            for field in ("step", "agent", "kind", "summary", "payload", "ts", "provenance"):
                assert copy[field] == original[field]

    async def test_huge_fork_step_is_clamped(
        self, client: AsyncClient, start_mission, tick_until
    ):
        parent_id = await start_mission("generated")
        await tick_until(parent_id, 4)

        forked = await _fork(client, parent_id, 2**63)
        assert forked["branch_from_step"] == 4

        child = (await client.get(f"/api/missions/{forked['mission_id']}")).json()
        assert [e["step"] for e in child["events"]] == [1, 2, 3, 4]

    async def test_lineages_are_independent(
        self, client: AsyncClient, start_mission, tick_until
    ):
        parent_id = await start_mission("generated")
        await tick_until(parent_id, 5)
        child_id = (await _fork(client, parent_id, 3))["mission_id"]

        child_tick = (await client.post(f"/api/missions/{child_id}/tick")).json()
        assert child_tick["outcome"] == "advanced"
        assert child_tick["step"] == 4

        parent_tick = (await client.post(f"/api/missions/{parent_id}/tick")).json()
        assert parent_tick["step"] == 6

        parent = (await client.get(f"/api/missions/{parent_id}")).json()
        child = (await client.get(f"/api/missions/{child_id}")).json()
        assert [e["step"] for e in parent["events"]] == [1, 2, 3, 4, 5, 6]
        assert [e["step"] for e in child["events"]] == [1, 2, 3, 4]
        assert parent["mission"]["current_step"] == 6
        assert child["mission"]["current_step"] == 4

    async def test_fork_of_done_parent_is_running(
        self, client: AsyncClient, start_mission, tick_until, store_group
    ):
        parent_id = await start_mission("generated")
        await tick_until(parent_id, 17)

        child_id = (await _fork(client, parent_id, 17))["mission_id"]
        child = (await client.get(f"/api/missions/{child_id}")).json()["mission"]
        assert child["status"] == "running"
        assert child["current_step"] == 17

        # 没有下一步可推进
        settled = (await client.post(f"/api/missions/{child_id}/tick")).json()
        assert settled["outcome"] == "settled"

        # 重新折叠仍与缓存一致（分叉点之前的 DONE 不计入）
        assert await find_drift(store_group.event_store, store_group.mission_store) == []

    async def test_invalid_fork_step(self, client: AsyncClient, start_mission):
        mission_id = await start_mission()
        for fork_step in (0, -3):
            resp = await client.post(
                f"/api/missions/{mission_id}/fork", json={"fork_step": fork_step}
            )
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == "INVALID_INPUT"

        resp = await client.post(f"/api/missions/{mission_id}/fork", json={"fork_step": "x"})
        assert resp.status_code == 400

    async def test_unknown_parent(self, client: AsyncClient):
        resp = await client.post(f"/api/missions/{new_id()}/fork", json={"fork_step": 3})
        assert resp.status_code == 404


class TestForkEngine:
    async def test_parent_without_events_not_forkable(self, store_group):
        now = datetime.now(UTC)
        empty = Mission(mission_id=new_id(), title="空任务", created_at=now, updated_at=now)
        await store_group.mission_store.create_mission(empty)
        await store_group.conn.commit()

        with pytest.raises(NotForkableError) as exc_info:
            await ForkEngine(store_group).fork(empty.mission_id, 5)
        assert exc_info.value.code == "NOT_FORKABLE"

        missions = await store_group.mission_store.list_missions()
        assert [m.mission_id for m in missions] == [empty.mission_id]

    async def test_fork_inherits_failed_parent_as_running(self, store_group, client, start_mission):
        parent_id = await start_mission("scripted")
        await store_group.conn.execute(
            "UPDATE missions SET status = 'failed' WHERE mission_id = ?", (parent_id,)
        )
        await store_group.conn.commit()

        child_id = await ForkEngine(store_group).fork(parent_id, 1)

        child = await store_group.mission_store.get_mission(child_id)
        assert child.status == MissionStatus.RUNNING
        assert child.run_mode == "scripted"

    async def test_fork_step_beyond_storage_range_is_clamped(self, store_group, start_mission):
        parent_id = await start_mission("scripted")

        child_id = await ForkEngine(store_group).fork(parent_id, 2**63)

        child = await store_group.mission_store.get_mission(child_id)
        assert child.lineage.branch_from_step == 1
        assert child.current_step == 1
