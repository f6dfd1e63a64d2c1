"""枚举定义

包含 MissionStatus、AgentRole、EventKind、RunMode、Provenance，
以及 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class MissionStatus(StrEnum):
    """任务状态"""

    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


# 非 running 的状态都不再推进
TERMINAL_STATES: set[MissionStatus] = {
    MissionStatus.DONE,
    MissionStatus.FAILED,
}


class AgentRole(StrEnum):
    """产生事件的角色"""

    PLANNER = "Planner"
    RESEARCHER = "Researcher"
    EXECUTOR = "Executor"
    CRITIC = "Critic"


class EventKind(StrEnum):
    """事件类型"""

    PLAN = "PLAN"
    ASSIGN = "ASSIGN"
    TOOL_CALL = "TOOL_CALL"
    TOOL_RESULT = "TOOL_RESULT"
    CHECKPOINT = "CHECKPOINT"
    NOTE = "NOTE"
    FAIL = "FAIL"
    RETRY = "RETRY"
    DONE = "DONE"


class RunMode(StrEnum):
    """任务运行模式：脚本驱动或由 Tick 引擎生成"""

    SCRIPTED = "scripted"
    GENERATED = "generated"


class Provenance(StrEnum):
    """事件内容来源"""

    SCRIPTED = "scripted"
    GENERATED = "generated"
    FALLBACK = "fallback"
