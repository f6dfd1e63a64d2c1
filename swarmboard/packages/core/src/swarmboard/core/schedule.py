"""Step Schedule -- 步骤号到 (agent, kind) 的静态映射

无论事件文本由哪个协作方提供（脚本、生成器或兜底内容），
第 N 步出现的角色和事件类型都由此表决定，确保推进过程确定。
"""

from typing import NamedTuple

from .models.enums import AgentRole, EventKind


class ScheduleEntry(NamedTuple):
    """单个步骤的预期角色和事件类型"""

    step: int
    agent: AgentRole
    kind: EventKind


STEP_SCHEDULE: tuple[ScheduleEntry, ...] = (
    ScheduleEntry(1, AgentRole.PLANNER, EventKind.PLAN),
    ScheduleEntry(2, AgentRole.PLANNER, EventKind.ASSIGN),
    ScheduleEntry(3, AgentRole.RESEARCHER, EventKind.TOOL_CALL),
    ScheduleEntry(4, AgentRole.RESEARCHER, EventKind.TOOL_RESULT),
    ScheduleEntry(5, AgentRole.CRITIC, EventKind.NOTE),
    ScheduleEntry(6, AgentRole.PLANNER, EventKind.CHECKPOINT),
    ScheduleEntry(7, AgentRole.EXECUTOR, EventKind.TOOL_CALL),
    ScheduleEntry(8, AgentRole.EXECUTOR, EventKind.TOOL_RESULT),
    ScheduleEntry(9, AgentRole.RESEARCHER, EventKind.FAIL),
    ScheduleEntry(10, AgentRole.EXECUTOR, EventKind.RETRY),
    ScheduleEntry(11, AgentRole.EXECUTOR, EventKind.TOOL_RESULT),
    ScheduleEntry(12, AgentRole.CRITIC, EventKind.NOTE),
    ScheduleEntry(13, AgentRole.PLANNER, EventKind.CHECKPOINT),
    ScheduleEntry(14, AgentRole.EXECUTOR, EventKind.TOOL_CALL),
    ScheduleEntry(15, AgentRole.EXECUTOR, EventKind.TOOL_RESULT),
    ScheduleEntry(16, AgentRole.CRITIC, EventKind.NOTE),
    ScheduleEntry(17, AgentRole.PLANNER, EventKind.DONE),
)

_BY_STEP: dict[int, ScheduleEntry] = {entry.step: entry for entry in STEP_SCHEDULE}


def schedule_for(step: int) -> ScheduleEntry | None:
    """查询指定步骤的预期 (agent, kind)，超出表范围返回 None"""
    return _BY_STEP.get(step)


def total_steps() -> int:
    """步骤总数"""
    return len(STEP_SCHEDULE)


def is_terminal(step: int) -> bool:
    """该步骤是否为终止步骤（DONE）"""
    entry = _BY_STEP.get(step)
    return entry is not None and entry.kind == EventKind.DONE


def terminal_step() -> int:
    """终止步骤号"""
    return max(entry.step for entry in STEP_SCHEDULE if entry.kind == EventKind.DONE)
