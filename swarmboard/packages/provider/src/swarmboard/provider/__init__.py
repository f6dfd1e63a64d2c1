"""SwarmBoard Provider -- 外部协作方抽象层

packages/provider 的公开接口导出：内容生成器、上下文排序器、默认内容表和降级管理器。
"""

# 核心组件
from .client import LiteLLMContentGenerator

# 配置
from .config import ProviderConfig, load_provider_config
from .default_content import DEFAULT_SCRIPT, DefaultContentProvider, ScriptedContent

# 异常
from .exceptions import (
    GeneratorUnavailableError,
    MalformedContentError,
    ProviderError,
    RankerUnavailableError,
)
from .fallback import ContentFallbackManager, ContentGenerator, ContextRanker

# 数据模型
from .models import GeneratedContent, GenerationRequest, RankResult
from .ranker import VoyageContextRanker


def build_content_manager(config: ProviderConfig) -> ContentFallbackManager:
    """按配置组装降级管理器：未配置的协作方不创建"""
    generator = None
    if config.generator_configured:
        generator = LiteLLMContentGenerator(
            model=config.llm_model,
            api_key=config.llm_api_key.get_secret_value(),
            api_base=config.llm_api_base,
            timeout_s=config.llm_timeout_s,
            retry_wait_s=config.llm_retry_wait_s,
        )

    ranker = None
    if config.ranker_configured:
        ranker = VoyageContextRanker(
            api_key=config.voyage_api_key.get_secret_value(),
            model=config.rerank_model,
            timeout_s=config.rank_timeout_s,
        )

    # 总超时为单次超时加一次限流等待与重试
    generate_timeout_s = config.llm_timeout_s * 2 + config.llm_retry_wait_s
    return ContentFallbackManager(
        generator=generator,
        ranker=ranker,
        default_content=DefaultContentProvider(),
        generate_timeout_s=generate_timeout_s,
        rank_timeout_s=config.rank_timeout_s,
    )


__all__ = [
    "GenerationRequest",
    "GeneratedContent",
    "RankResult",
    "LiteLLMContentGenerator",
    "VoyageContextRanker",
    "DefaultContentProvider",
    "ScriptedContent",
    "DEFAULT_SCRIPT",
    "ContentFallbackManager",
    "ContentGenerator",
    "ContextRanker",
    "build_content_manager",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "GeneratorUnavailableError",
    "MalformedContentError",
    "RankerUnavailableError",
]
