"""Core 异常体系

调用方需要能够区分三类结果：输入非法、对象不存在、暂时性存储故障（可重试）。
重复 step 的写入不属于错误，由 AppendResult 显式表达。
"""


class SwarmboardError(Exception):
    """Core 包基础异常"""

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, retryable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            retryable: 调用方重试是否安全且可能成功
        """
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class ValidationError(SwarmboardError):
    """输入非法（ID 格式错误、step 非正、未知 agent/kind 等），未发生任何写入"""

    code = "INVALID_INPUT"


class MissionNotFoundError(SwarmboardError):
    """任务不存在"""

    code = "MISSION_NOT_FOUND"

    def __init__(self, mission_id: str) -> None:
        super().__init__(f"Mission with id {mission_id} does not exist")
        self.mission_id = mission_id


class NotForkableError(SwarmboardError):
    """父任务在 fork 点及之前没有任何事件"""

    code = "NOT_FORKABLE"

    def __init__(self, mission_id: str, fork_step: int) -> None:
        super().__init__(
            f"No events found at or before step {fork_step} of mission {mission_id}"
        )
        self.mission_id = mission_id
        self.fork_step = fork_step


class StorageError(SwarmboardError):
    """存储层故障，对当前调用是致命的

    Core 不自动重试；由于写入是幂等的，调用方重试是安全的。
    """

    code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, retryable=True)
        self.original_error = original_error
