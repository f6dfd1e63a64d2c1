"""Mission Domain Model

missions 表是 events 的物化视图（projection）缓存，
聚合字段只通过事件写入的副作用更新。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import MissionStatus, RunMode
from .event import Event


class MissionArtifacts(BaseModel):
    """任务产出物"""

    latest_summary: str | None = Field(default=None, description="最近一次 checkpoint 的摘要")


class MissionLineage(BaseModel):
    """Fork 血缘信息"""

    parent_mission_id: str = Field(description="父任务 ID")
    branch_from_step: int = Field(ge=1, description="分叉点（实际复制到的最大 step）")


class MissionAggregate(BaseModel):
    """由事件折叠得到的聚合状态"""

    status: MissionStatus = Field(default=MissionStatus.RUNNING)
    current_step: int = Field(default=0, ge=0)
    last_checkpoint_at: datetime | None = Field(default=None)
    last_checkpoint_step: int | None = Field(default=None)
    artifacts: MissionArtifacts = Field(default_factory=MissionArtifacts)


class Mission(BaseModel):
    """Mission 数据模型 -- 一条工作血缘"""

    mission_id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题")
    status: MissionStatus = Field(default=MissionStatus.RUNNING, description="当前状态")
    current_step: int = Field(default=0, ge=0, description="当前步骤，单调不减")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    last_checkpoint_at: datetime | None = Field(default=None, description="最近 checkpoint 时间")
    last_checkpoint_step: int | None = Field(default=None, description="最近 checkpoint 所在 step")
    artifacts: MissionArtifacts = Field(default_factory=MissionArtifacts)
    lineage: MissionLineage | None = Field(default=None, description="仅 fork 任务有值")
    run_mode: RunMode = Field(default=RunMode.SCRIPTED, description="运行模式")

    @property
    def status_after_step(self) -> int:
        """终态判定只统计大于该 step 的事件（fork 任务为分叉点，否则为 0）"""
        return self.lineage.branch_from_step if self.lineage else 0

    def aggregate(self) -> MissionAggregate:
        """取出当前缓存的聚合字段"""
        return MissionAggregate(
            status=self.status,
            current_step=self.current_step,
            last_checkpoint_at=self.last_checkpoint_at,
            last_checkpoint_step=self.last_checkpoint_step,
            artifacts=self.artifacts,
        )

    def with_aggregate(self, aggregate: MissionAggregate) -> "Mission":
        """返回聚合字段被替换后的副本"""
        return self.model_copy(update=dict(aggregate))


class MissionWithEvents(BaseModel):
    """任务详情 + 有界事件列表（按 step 升序）"""

    mission: Mission
    events: list[Event]
