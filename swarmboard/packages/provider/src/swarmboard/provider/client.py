"""LiteLLMContentGenerator -- 基于 litellm.acompletion() 的内容生成器

把一个步骤的 (agent, kind) 和排序后的上下文转换为 {summary, payload, checkpoint 摘要}。
限流时等待后重试一次；其他失败直接抛出，由 ContentFallbackManager 降级。
"""

import asyncio
import json
import time

import httpx
import structlog
from litellm import acompletion

from .exceptions import GeneratorUnavailableError, MalformedContentError, ProviderError
from .models import GeneratedContent, GenerationRequest
from .prompts import build_messages

log = structlog.get_logger()

# 生成摘要最大长度
SUMMARY_MAX_LENGTH = 160

# 单次生成最大 token 数
MAX_TOKENS = 200

# 连接类异常类型集合（触发 GeneratorUnavailableError）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误（生成器不可达）"""
    if isinstance(e, _CONNECTION_ERROR_TYPES):
        return True
    # LiteLLM 的 APIConnectionError 也属于连接类错误
    error_name = type(e).__name__
    return error_name in ("APIConnectionError", "APITimeoutError", "Timeout")


def _is_rate_limit_error(e: Exception) -> bool:
    """判断异常是否为限流（HTTP 429）"""
    if type(e).__name__ == "RateLimitError":
        return True
    return getattr(e, "status_code", None) == 429


def _strip_code_fence(text: str) -> str:
    """去掉模型可能包裹的 ```json ... ``` 代码块"""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = [line for line in stripped.splitlines() if not line.strip().startswith("```")]
    return "\n".join(lines).strip()


def parse_generated_content(raw: str, kind: str) -> GeneratedContent:
    """解析生成器输出

    Raises:
        MalformedContentError: 非 JSON、顶层不是对象或缺少 summary
    """
    try:
        parsed = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise MalformedContentError(f"Generator output is not valid JSON: {e}", raw=raw) from e

    if not isinstance(parsed, dict):
        raise MalformedContentError("Generator output is not a JSON object", raw=raw)

    summary = parsed.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise MalformedContentError("Generator output has no summary", raw=raw)

    payload = parsed.get("payload")
    if not isinstance(payload, dict):
        payload = {}

    checkpoint_summary = None
    artifact_update = parsed.get("artifactUpdate")
    if kind == "CHECKPOINT" and isinstance(artifact_update, dict):
        latest = artifact_update.get("latestSummary")
        if isinstance(latest, str) and latest.strip():
            checkpoint_summary = latest

    return GeneratedContent(
        summary=summary[:SUMMARY_MAX_LENGTH],
        payload=payload,
        checkpoint_summary=checkpoint_summary,
    )


class LiteLLMContentGenerator:
    """LiteLLM 内容生成器

    封装 litellm.acompletion() 调用，负责 prompt 构建、JSON 解析和一次限流重试。
    """

    def __init__(
        self,
        model: str,
        api_key: str = "",
        api_base: str = "",
        timeout_s: int = 30,
        retry_wait_s: float = 20.0,
    ) -> None:
        """初始化内容生成器

        Args:
            model: LiteLLM 模型名（如 gpt-4o-mini）
            api_key: 访问密钥，空表示由 LiteLLM 从环境读取
            api_base: API 基础 URL，空表示使用 provider 默认
            timeout_s: 单次请求超时（秒）
            retry_wait_s: 限流后重试前的等待（秒）
        """
        self._model = model
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._timeout_s = timeout_s
        self._retry_wait_s = retry_wait_s

    @property
    def model(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> GeneratedContent:
        """为一个步骤生成内容

        Returns:
            GeneratedContent（is_fallback=False）

        Raises:
            GeneratorUnavailableError: 连接失败、超时或限流重试后仍失败
            MalformedContentError: 输出无法解析
            ProviderError: 其他调用错误
        """
        start_time = time.monotonic()
        messages = build_messages(request)

        log.debug(
            "generator_call_start",
            model=self._model,
            step=request.step,
            kind=request.kind,
            context_count=len(request.ranked_context),
        )

        try:
            raw = await self._complete(messages)
        except ProviderError:
            raise
        except Exception as e:
            if not _is_rate_limit_error(e):
                raise self._wrap_error(e, start_time) from e
            log.warning(
                "generator_rate_limited_retrying",
                model=self._model,
                step=request.step,
                wait_s=self._retry_wait_s,
            )
            await asyncio.sleep(self._retry_wait_s)
            try:
                raw = await self._complete(messages)
            except ProviderError:
                raise
            except Exception as retry_error:
                raise self._wrap_error(retry_error, start_time) from retry_error

        content = parse_generated_content(raw, request.kind)
        duration_ms = int((time.monotonic() - start_time) * 1000)

        log.info(
            "generator_call_completed",
            model=self._model,
            step=request.step,
            kind=request.kind,
            duration_ms=duration_ms,
        )

        return content.model_copy(
            update={"model_name": self._model, "duration_ms": duration_ms}
        )

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        call_kwargs = {
            "model": self._model,
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": MAX_TOKENS,
            "timeout": self._timeout_s,
        }
        if self._api_base:
            call_kwargs["api_base"] = self._api_base
        if self._api_key:
            call_kwargs["api_key"] = self._api_key

        response = await acompletion(**call_kwargs)
        content = response.choices[0].message.content
        if not content:
            raise MalformedContentError("Generator returned empty content")
        return content

    def _wrap_error(self, e: Exception, start_time: float) -> ProviderError:
        """把底层异常包装为 Provider 异常"""
        duration_ms = int((time.monotonic() - start_time) * 1000)
        log.error(
            "generator_call_failed",
            model=self._model,
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=duration_ms,
        )
        # 区分连接类/限流错误与业务错误
        if _is_connection_error(e) or _is_rate_limit_error(e):
            return GeneratorUnavailableError(model=self._model, original_error=e)
        return ProviderError(message=f"Generator call failed: {e}", recoverable=True)
