"""健康检查、协作方状态与开发路由测试"""

from httpx import ASGITransport, AsyncClient


class TestHealth:
    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_readiness(self, client: AsyncClient):
        resp = await client.get("/ready")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ready"
        checks = body["checks"]
        assert checks["sqlite"] == "ok"
        assert checks["wal_mode"] == "ok"
        assert checks["disk_space_mb"] > 0
        assert checks["generator"] == "fallback"
        assert checks["ranker"] == "fallback"

    async def test_readiness_after_db_closed(self, client: AsyncClient, app):
        await app.state.store_group.close()
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["checks"]["sqlite"].startswith("error")


class TestAgentsStatus:
    async def test_unconfigured(self, client: AsyncClient):
        resp = await client.get("/api/agents/status")
        assert resp.status_code == 200
        assert resp.json() == {
            "llm_mode": "fallback",
            "generator_configured": False,
            "ranker_configured": False,
            "model": "gpt-4o-mini",
            "rerank_model": "rerank-2-lite",
        }


class TestDevReset:
    async def test_reset_wipes_everything(self, client: AsyncClient, start_mission, tick_until):
        first = await start_mission("generated")
        await tick_until(first, 3)
        await start_mission("scripted")

        resp = await client.post("/api/dev/reset")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "deleted": {"missions": 2, "events": 4}}

        assert (await client.get("/api/missions")).json()["missions"] == []
        assert (await client.get(f"/api/missions/{first}")).status_code == 404

    async def test_reset_not_registered_by_default(self, monkeypatch, app):
        monkeypatch.delenv("SWARMBOARD_ENABLE_DEV_ROUTES", raising=False)
        from swarmboard.gateway.main import create_app

        production_app = create_app()
        production_app.state.store_group = app.state.store_group
        async with AsyncClient(
            transport=ASGITransport(app=production_app), base_url="http://test"
        ) as ac:
            resp = await ac.post("/api/dev/reset")
        assert resp.status_code == 404
