"""ProviderConfig -- Provider 配置加载

从环境变量加载配置，不硬编码 provider 密钥。
未配置的协作方不会被调用，直接使用降级路径。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_RERANK_MODEL = "rerank-2-lite"


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        SWARMBOARD_LLM_MODE: 生成模式（litellm/fallback）
        SWARMBOARD_LLM_MODEL: LiteLLM 模型名（默认 gpt-4o-mini）
        SWARMBOARD_LLM_API_BASE: 可选的 API 基础 URL（如 LiteLLM Proxy）
        SWARMBOARD_LLM_API_KEY: 生成器访问密钥
        SWARMBOARD_LLM_TIMEOUT_S: 生成超时（秒，默认 30）
        SWARMBOARD_LLM_RETRY_WAIT_S: 限流后重试前的等待（秒，默认 20）
        VOYAGE_API_KEY: Voyage rerank 密钥
        VOYAGE_RERANK_MODEL: rerank 模型（默认 rerank-2-lite）
        SWARMBOARD_RANK_TIMEOUT_S: 排序超时（秒，默认 10）
    """

    llm_mode: Literal["litellm", "fallback"] = Field(
        default="litellm",
        description="生成模式：litellm / fallback（只用默认内容）",
    )
    llm_model: str = Field(default=DEFAULT_LLM_MODEL, description="LiteLLM 模型名")
    llm_api_base: str = Field(default="", description="API 基础 URL，空表示使用 provider 默认")
    llm_api_key: SecretStr = Field(default=SecretStr(""), description="生成器访问密钥")
    llm_timeout_s: int = Field(default=30, ge=1, description="生成调用超时（秒）")
    llm_retry_wait_s: float = Field(default=20.0, ge=0, description="限流重试等待（秒）")

    voyage_api_key: SecretStr = Field(default=SecretStr(""), description="Voyage 访问密钥")
    rerank_model: str = Field(default=DEFAULT_RERANK_MODEL, description="rerank 模型")
    rank_timeout_s: int = Field(default=10, ge=1, description="排序调用超时（秒）")

    @property
    def generator_configured(self) -> bool:
        """生成器是否可用：litellm 模式且提供了密钥或 API 地址"""
        if self.llm_mode != "litellm":
            return False
        return bool(self.llm_api_key.get_secret_value() or self.llm_api_base)

    @property
    def ranker_configured(self) -> bool:
        return bool(self.voyage_api_key.get_secret_value())


def _read_number(env_var: str, cast: type, default: float) -> float | None:
    """读取数值型环境变量，非法值记录警告并返回 None（使用默认值）"""
    val = os.environ.get(env_var)
    if not val:
        return None
    try:
        return cast(val)
    except ValueError:
        log.warning(
            "invalid_number_config",
            env_var=env_var,
            value=val,
            fallback=default,
        )
        # 使用默认值，不阻塞启动
        return None


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置

    Returns:
        ProviderConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("SWARMBOARD_LLM_MODE"):
        kwargs["llm_mode"] = val

    if val := os.environ.get("SWARMBOARD_LLM_MODEL"):
        kwargs["llm_model"] = val

    if val := os.environ.get("SWARMBOARD_LLM_API_BASE"):
        kwargs["llm_api_base"] = val

    if val := os.environ.get("SWARMBOARD_LLM_API_KEY"):
        kwargs["llm_api_key"] = SecretStr(val)

    if val := os.environ.get("VOYAGE_API_KEY"):
        kwargs["voyage_api_key"] = SecretStr(val)

    if val := os.environ.get("VOYAGE_RERANK_MODEL"):
        kwargs["rerank_model"] = val

    numbers = (
        ("SWARMBOARD_LLM_TIMEOUT_S", "llm_timeout_s", int, 30),
        ("SWARMBOARD_LLM_RETRY_WAIT_S", "llm_retry_wait_s", float, 20.0),
        ("SWARMBOARD_RANK_TIMEOUT_S", "rank_timeout_s", int, 10),
    )
    for env_var, field, cast, default in numbers:
        value = _read_number(env_var, cast, default)
        if value is not None:
            kwargs[field] = value

    return ProviderConfig(**kwargs)
