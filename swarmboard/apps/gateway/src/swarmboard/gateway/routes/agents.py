"""协作方状态路由

GET /api/agents/status: 内容生成器与上下文排序器是否已配置，以及使用的模型。
不发起任何外部调用。
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/api/agents/status")
async def agents_status(request: Request):
    """返回协作方配置状态"""
    config = request.app.state.provider_config
    return {
        "llm_mode": config.llm_mode,
        "generator_configured": config.generator_configured,
        "ranker_configured": config.ranker_configured,
        "model": config.llm_model,
        "rerank_model": config.rerank_model,
    }
