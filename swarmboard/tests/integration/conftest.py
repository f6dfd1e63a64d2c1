"""集成测试共享 fixture

integration_app 使用真实的 StoreGroup / SSEHub / ScriptedDriver，协作方由各测试
通过 content_manager fixture 覆盖，默认不配置（全部降级）。
"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from swarmboard.core.store import create_store_group
from swarmboard.provider import ContentFallbackManager, ProviderConfig, build_content_manager


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "sqlite" / "swarmboard.db"


@pytest.fixture
def content_manager() -> ContentFallbackManager:
    return build_content_manager(ProviderConfig(llm_mode="fallback"))


@pytest_asyncio.fixture
async def integration_app(db_path: Path, monkeypatch, content_manager):
    """集成测试用 FastAPI app"""
    monkeypatch.setenv("SWARMBOARD_DB_PATH", str(db_path))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from swarmboard.gateway.main import create_app
    from swarmboard.gateway.services.scripted_driver import ScriptedDriver
    from swarmboard.gateway.services.sse_hub import SSEHub

    app = create_app()

    store_group = await create_store_group(str(db_path))
    app.state.store_group = store_group
    app.state.sse_hub = SSEHub()
    app.state.provider_config = ProviderConfig(llm_mode="fallback")
    app.state.content_manager = content_manager
    app.state.scripted_driver = ScriptedDriver(
        store_group, app.state.sse_hub, content_manager, speed=1000
    )

    yield app

    await app.state.scripted_driver.stop_all()
    await app.state.store_group.close()


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


def parse_sse(body: str) -> list[tuple[str, dict]]:
    """把 SSE 响应体解析为 (event, data) 列表"""
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
