"""数据模型 -- GenerationRequest + GeneratedContent + RankResult

协作方的窄接口：输入输出都只包含推进一个步骤所需的最少字段。
agent / kind 使用字符串，provider 包不依赖 core 的枚举。
"""

from typing import Any

from pydantic import BaseModel, Field


class GenerationRequest(BaseModel):
    """内容生成请求"""

    mission_title: str = Field(description="任务标题")
    step: int = Field(ge=1, description="要生成的步骤号")
    agent: str = Field(description="该步骤的角色（由 Step Schedule 决定）")
    kind: str = Field(description="该步骤的事件类型（由 Step Schedule 决定）")
    ranked_context: list[str] = Field(
        default_factory=list,
        description="按相关度排序后的历史事件描述",
    )


class GeneratedContent(BaseModel):
    """内容生成结果

    所有来源（LiteLLM、默认内容表）统一返回此类型。
    """

    summary: str = Field(description="简短摘要（不超过 160 字符）")
    payload: dict[str, Any] = Field(default_factory=dict, description="小型结构化数据")
    checkpoint_summary: str | None = Field(
        default=None,
        description="CHECKPOINT 步骤的 artifact 摘要覆盖",
    )

    # 路由信息
    model_name: str = Field(default="", description="实际调用的模型名称，默认内容为空")
    duration_ms: int = Field(default=0, ge=0, description="端到端耗时（毫秒）")

    # 降级信息
    is_fallback: bool = Field(default=False, description="是否为降级内容")
    fallback_reason: str = Field(default="", description="降级原因说明")


class RankResult(BaseModel):
    """上下文排序结果：候选列表中的下标，按相关度从高到低"""

    indices: list[int] = Field(default_factory=list)
    is_fallback: bool = Field(default=False, description="是否退化为最近 K 条")
    fallback_reason: str = Field(default="")
