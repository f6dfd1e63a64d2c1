"""Provider 包测试 fixtures"""

import pytest
from swarmboard.provider.models import GenerationRequest


@pytest.fixture
def tool_call_request() -> GenerationRequest:
    """第 3 步 Researcher/TOOL_CALL 的生成请求"""
    return GenerationRequest(
        mission_title="AI Trends Research Mission",
        step=3,
        agent="Researcher",
        kind="TOOL_CALL",
        ranked_context=[
            "Step 1 [Planner/PLAN]: Mission initialized",
            "Step 2 [Planner/ASSIGN]: Assigned Researcher",
        ],
    )


@pytest.fixture
def checkpoint_request() -> GenerationRequest:
    """第 13 步 Planner/CHECKPOINT 的生成请求"""
    return GenerationRequest(
        mission_title="AI Trends Research Mission",
        step=13,
        agent="Planner",
        kind="CHECKPOINT",
        ranked_context=[f"Step {i} [Executor/NOTE]: line {i}" for i in range(1, 13)],
    )
