"""apps/gateway 测试配置 -- FastAPI app + httpx AsyncClient + 服务 fixture

app fixture 手动初始化 app.state（绕过 lifespan），协作方固定为降级模式，
脚本驱动使用高倍速，使测试不依赖外部服务且快速结束。
"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from swarmboard.core.store import StoreGroup, create_store_group
from swarmboard.provider import ContentFallbackManager, ProviderConfig, build_content_manager

TEST_SCRIPTED_SPEED = 1000.0


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    yield group
    await group.close()


@pytest.fixture
def content_manager() -> ContentFallbackManager:
    """未配置任何协作方的降级管理器"""
    return build_content_manager(ProviderConfig(llm_mode="fallback"))


@pytest_asyncio.fixture
async def app(tmp_path: Path, monkeypatch, store_group, content_manager):
    """创建测试用 FastAPI app 实例（启用开发路由）"""
    monkeypatch.setenv("SWARMBOARD_DB_PATH", str(tmp_path / "sqlite" / "test.db"))
    monkeypatch.setenv("SWARMBOARD_ENABLE_DEV_ROUTES", "true")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from swarmboard.gateway.main import create_app
    from swarmboard.gateway.services.scripted_driver import ScriptedDriver
    from swarmboard.gateway.services.sse_hub import SSEHub

    application = create_app()

    # 手动初始化（绕过 lifespan）
    application.state.store_group = store_group
    application.state.sse_hub = SSEHub()
    application.state.provider_config = ProviderConfig(llm_mode="fallback")
    application.state.content_manager = content_manager
    application.state.scripted_driver = ScriptedDriver(
        store_group,
        application.state.sse_hub,
        content_manager,
        speed=TEST_SCRIPTED_SPEED,
    )

    yield application

    await application.state.scripted_driver.stop_all()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def start_mission(client):
    """通过 API 创建任务，返回 mission_id"""

    async def _start(run_mode: str = "generated", **fields) -> str:
        resp = await client.post("/api/missions/start", json={"run_mode": run_mode, **fields})
        assert resp.status_code == 201, resp.text
        return resp.json()["mission_id"]

    return _start


@pytest.fixture
def tick_until(client):
    """连续调用 tick 直到 current_step 达到目标"""

    async def _tick(mission_id: str, target_step: int) -> list[dict]:
        results = []
        while True:
            detail = (await client.get(f"/api/missions/{mission_id}")).json()
            if detail["mission"]["current_step"] >= target_step:
                return results
            resp = await client.post(f"/api/missions/{mission_id}/tick")
            assert resp.status_code == 200, resp.text
            results.append(resp.json())
            if results[-1]["outcome"] == "settled":
                return results

    return _tick


def parse_sse(body: str) -> list[tuple[str, dict]]:
    """把 SSE 响应体解析为 (event, data) 列表，忽略注释行"""
    messages = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        event_name = "message"
        data_lines = []
        for line in block.split("\n"):
            if line.startswith("event:"):
                event_name = line[len("event:") :].strip()
            elif line.startswith("data:"):
                data_lines.append(line[len("data:") :].strip())
        if data_lines:
            messages.append((event_name, json.loads("\n".join(data_lines))))
    return messages


@pytest.fixture
def sse_parser():
    return parse_sse
