"""Event Domain Model

事件表 append-only，不允许更新或删除。
event_id 使用 ULID 格式，时间有序。
(mission_id, step) 唯一，由存储层唯一索引保证。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import AgentRole, EventKind, Provenance


class Event(BaseModel):
    """Event 数据模型 -- 一条不可变的事实"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    mission_id: str = Field(description="所属 Mission ID")
    ts: datetime = Field(description="事件时间戳")
    step: int = Field(ge=1, description="任务内步骤号，同一任务内唯一")
    agent: AgentRole = Field(description="产生事件的角色")
    kind: EventKind = Field(description="事件类型")
    summary: str = Field(description="简短可读摘要")
    payload: dict[str, Any] = Field(
        default_factory=dict, description="结构化 payload，对 core 不透明"
    )
    provenance: Provenance = Field(default=Provenance.SCRIPTED, description="内容来源")
    checkpoint_summary: str | None = Field(
        default=None,
        description="CHECKPOINT 事件的显式 artifact 摘要（覆盖 summary）",
    )

    def describe(self) -> str:
        """单行描述，用作上下文排序和 prompt 的候选文本"""
        return f"Step {self.step} [{self.agent}/{self.kind}]: {self.summary}"
