"""SwarmBoard Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    TERMINAL_STATES,
    AgentRole,
    EventKind,
    MissionStatus,
    Provenance,
    RunMode,
)
from .event import Event
from .mission import (
    Mission,
    MissionAggregate,
    MissionArtifacts,
    MissionLineage,
    MissionWithEvents,
)

__all__ = [
    # 枚举
    "MissionStatus",
    "AgentRole",
    "EventKind",
    "RunMode",
    "Provenance",
    "TERMINAL_STATES",
    # Event
    "Event",
    # Mission
    "Mission",
    "MissionAggregate",
    "MissionArtifacts",
    "MissionLineage",
    "MissionWithEvents",
]
