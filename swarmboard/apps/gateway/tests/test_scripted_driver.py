"""ScriptedDriver 测试

测试内容：
1. 按默认内容表把 scripted 任务写到 done（provenance=scripted）
2. 同一任务重复启动不产生重复事件
3. 任务不再 running 时驱动停止
4. POST /api/missions/start auto_drive=true 启动驱动（仅 scripted 任务）
5. stop_all 取消所有驱动
"""

import asyncio
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from swarmboard.gateway.services.mission_service import MissionService
from swarmboard.gateway.services.scripted_driver import ScriptedDriver
from swarmboard.provider import DEFAULT_SCRIPT


async def _wait_until_idle(driver: ScriptedDriver, mission_id: str, timeout_s: float = 5) -> None:
    async with asyncio.timeout(timeout_s):
        while driver.is_running(mission_id):
            await asyncio.sleep(0.01)


class TestScriptedDriver:
    async def test_drives_mission_to_done(self, store_group):
        service = MissionService(store_group)
        driver = ScriptedDriver(store_group, speed=1000)
        mission_id = await service.start("scripted")

        assert driver.start(mission_id)
        await _wait_until_idle(driver, mission_id)

        detail = await service.get_mission_with_events(mission_id)
        assert detail.mission.status == "done"
        assert [e.step for e in detail.events] == list(range(1, 18))
        assert all(e.provenance == "scripted" for e in detail.events)
        assert [e.summary for e in detail.events] == [
            DEFAULT_SCRIPT[step].summary for step in range(1, 18)
        ]

    async def test_duplicate_start_is_harmless(self, store_group):
        service = MissionService(store_group)
        driver = ScriptedDriver(store_group, speed=1000)
        other_driver = ScriptedDriver(store_group, speed=1000)
        mission_id = await service.start("scripted")

        assert driver.start(mission_id)
        assert not driver.start(mission_id)
        # 另一个驱动器实例（如另一个进程）同时写入同一任务
        assert other_driver.start(mission_id)
        await _wait_until_idle(driver, mission_id)
        await _wait_until_idle(other_driver, mission_id)

        detail = await service.get_mission_with_events(mission_id)
        assert [e.step for e in detail.events] == list(range(1, 18))

    async def test_stops_when_mission_settled(self, store_group):
        service = MissionService(store_group)
        driver = ScriptedDriver(store_group, speed=1000)
        mission_id = await service.start("scripted")
        await service.emit_event(mission_id, 3, "Planner", "DONE", "cancelled early")

        driver.start(mission_id)
        await _wait_until_idle(driver, mission_id)

        detail = await service.get_mission_with_events(mission_id)
        assert [e.step for e in detail.events] == [1, 3]

    async def test_stop_all_cancels(self, store_group):
        service = MissionService(store_group)
        driver = ScriptedDriver(store_group, speed=0.001)
        mission_id = await service.start("scripted")

        driver.start(mission_id)
        assert driver.is_running(mission_id)
        await driver.stop_all()

        assert not driver.is_running(mission_id)
        detail = await service.get_mission_with_events(mission_id)
        assert len(detail.events) == 1

    async def test_unexpected_error_is_logged(self, store_group):
        service = MissionService(store_group)
        driver = ScriptedDriver(store_group, speed=1000)
        mission_id = await service.start("scripted")

        with (
            patch.object(
                MissionService,
                "emit_event",
                new_callable=AsyncMock,
                side_effect=RuntimeError("disk on fire"),
            ),
            patch("swarmboard.gateway.services.scripted_driver.log") as mock_log,
        ):
            driver.start(mission_id)
            await _wait_until_idle(driver, mission_id)

        mock_log.error.assert_called_once()
        args, kwargs = mock_log.error.call_args
        assert args == ("scripted_driver_crashed",)
        assert kwargs["mission_id"] == mission_id
        assert kwargs["error_type"] == "RuntimeError"


class TestAutoDrive:
    async def test_start_with_auto_drive(self, client: AsyncClient, app):
        resp = await client.post(
            "/api/missions/start", json={"run_mode": "scripted", "auto_drive": True}
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["auto_drive"] is True

        driver = app.state.scripted_driver
        await _wait_until_idle(driver, body["mission_id"])

        mission = (await client.get(f"/api/missions/{body['mission_id']}")).json()["mission"]
        assert mission["status"] == "done"
        assert mission["current_step"] == 17

    async def test_generated_mission_not_driven(self, client: AsyncClient, app):
        resp = await client.post(
            "/api/missions/start", json={"run_mode": "generated", "auto_drive": True}
        )
        body = resp.json()
        assert body["auto_drive"] is False
        assert not app.state.scripted_driver.is_running(body["mission_id"])
