"""ContentFallbackManager -- 协作方降级管理器

按需尝试策略：每次调用时先尝试已配置的协作方，失败则切换到确定性降级。
不维护显式的“降级状态”标记，也不向调用方抛出协作方异常。

降级链:
    生成: LiteLLMContentGenerator -> DefaultContentProvider
    排序: VoyageContextRanker -> 最近 K 条
"""

import asyncio
from typing import Protocol

import structlog

from .default_content import DefaultContentProvider
from .models import GeneratedContent, GenerationRequest, RankResult
from .ranker import most_recent_indices

log = structlog.get_logger()


class ContentGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> GeneratedContent: ...


class ContextRanker(Protocol):
    async def rank(self, query: str, documents: list[str], top_k: int) -> list[int]: ...


class ContentFallbackManager:
    """内容生成与上下文排序的降级管理器

    所有协作方调用都有超时上限；不可用、超时、异常或输出非法都等同于“不可用”，
    直接使用降级结果，保证 Tick 推进不会因依赖故障而停滞。
    """

    def __init__(
        self,
        generator: ContentGenerator | None = None,
        ranker: ContextRanker | None = None,
        default_content: DefaultContentProvider | None = None,
        generate_timeout_s: float = 30,
        rank_timeout_s: float = 10,
    ) -> None:
        """初始化降级管理器

        Args:
            generator: 内容生成器，None 表示未配置（始终使用默认内容）
            ranker: 上下文排序器，None 表示未配置（始终使用最近 K 条）
            default_content: 默认内容表
            generate_timeout_s: 生成调用总超时（包含限流重试）
            rank_timeout_s: 排序调用超时
        """
        self._generator = generator
        self._ranker = ranker
        self._default_content = default_content or DefaultContentProvider()
        self._generate_timeout_s = generate_timeout_s
        self._rank_timeout_s = rank_timeout_s

    @property
    def generator_configured(self) -> bool:
        return self._generator is not None

    @property
    def ranker_configured(self) -> bool:
        return self._ranker is not None

    @property
    def default_content(self) -> DefaultContentProvider:
        return self._default_content

    async def generate(self, request: GenerationRequest) -> GeneratedContent:
        """带降级的内容生成

        Returns:
            GeneratedContent
            - 生成器成功: is_fallback=False
            - 未配置或失败: 默认内容，is_fallback=True, fallback_reason=<原因>
        """
        if self._generator is None:
            return self._fallback_content(request, "generator_not_configured")

        try:
            return await asyncio.wait_for(
                self._generator.generate(request),
                timeout=self._generate_timeout_s,
            )
        except TimeoutError:
            log.warning(
                "generator_timeout_using_default",
                step=request.step,
                timeout_s=self._generate_timeout_s,
            )
            return self._fallback_content(request, "generator_timeout")
        except Exception as e:
            log.warning(
                "generator_failed_using_default",
                step=request.step,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback_content(request, f"generator_failed: {e}")

    async def rank(self, query: str, documents: list[str], top_k: int) -> RankResult:
        """带降级的上下文排序

        Returns:
            RankResult；排序器未配置或失败时为最近 top_k 条（is_fallback=True）
        """
        if self._ranker is None:
            return RankResult(
                indices=most_recent_indices(len(documents), top_k),
                is_fallback=True,
                fallback_reason="ranker_not_configured",
            )

        try:
            indices = await asyncio.wait_for(
                self._ranker.rank(query, documents, top_k),
                timeout=self._rank_timeout_s,
            )
            return RankResult(indices=indices)
        except TimeoutError:
            reason = "ranker_timeout"
        except Exception as e:
            reason = f"ranker_failed: {e}"

        log.warning(
            "ranker_failed_using_recent",
            candidate_count=len(documents),
            top_k=top_k,
            reason=reason,
        )
        return RankResult(
            indices=most_recent_indices(len(documents), top_k),
            is_fallback=True,
            fallback_reason=reason,
        )

    def _fallback_content(self, request: GenerationRequest, reason: str) -> GeneratedContent:
        content = self._default_content.content_for(request.step, request.agent, request.kind)
        log.info(
            "default_content_used",
            step=request.step,
            kind=request.kind,
            reason=reason,
        )
        return content.model_copy(update={"is_fallback": True, "fallback_reason": reason})
