"""Provider 异常体系

协作方（内容生成器、上下文排序器）的所有失败都由 ContentFallbackManager 吸收并记录，
不会传递给 Tick 引擎的调用方。
"""


class ProviderError(Exception):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试或降级恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class GeneratorUnavailableError(ProviderError):
    """内容生成器不可达（连接失败、超时、限流重试后仍失败等）

    此异常触发 ContentFallbackManager 的默认内容降级。
    """

    def __init__(self, model: str, original_error: Exception) -> None:
        """
        Args:
            model: 尝试调用的模型名
            original_error: 原始异常
        """
        super().__init__(
            f"Content generator unavailable: {model} -- {original_error}",
            recoverable=True,
        )
        self.model = model
        self.original_error = original_error


class MalformedContentError(ProviderError):
    """生成器返回的内容不是合法 JSON 或缺少 summary

    不重试，直接降级为默认内容。
    """

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message, recoverable=True)
        self.raw = raw


class RankerUnavailableError(ProviderError):
    """上下文排序器不可用（HTTP 错误、超时、结果为空）

    调用方退化为“最近 K 条”。
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, recoverable=True)
        self.status_code = status_code
