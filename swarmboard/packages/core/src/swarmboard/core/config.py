"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、存储超时、列表上限、上下文窗口、SSE 心跳和回放节奏等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("SWARMBOARD_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "SWARMBOARD_DB_PATH",
        str(_get_base_dir() / "sqlite" / "swarmboard.db"),
    )


def dev_routes_enabled() -> bool:
    """是否注册开发用路由（如 /api/dev/reset 全量清空）"""
    return os.environ.get("SWARMBOARD_ENABLE_DEV_ROUTES", "false").lower() == "true"


# SQLite 写入等待上限（秒），同时用于 busy_timeout，保证存储调用不会无限阻塞
STORE_TIMEOUT_S: float = float(os.environ.get("SWARMBOARD_STORE_TIMEOUT_S", "5"))

# 单次查询返回的事件上限
EVENT_LIST_LIMIT: int = 200

# 任务列表上限（按创建时间倒序）
MISSION_LIST_LIMIT: int = 50

# Tick 时读取的最近事件窗口
CONTEXT_EVENTS_LIMIT: int = 40

# 交给内容生成器的排序后上下文条数
RERANK_TOP_K: int = 8

# 生成内容摘要最大长度
SUMMARY_MAX_LENGTH: int = 160

# 新任务默认标题
DEFAULT_MISSION_TITLE: str = "AI Trends Research Mission"

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("SWARMBOARD_SSE_HEARTBEAT_INTERVAL", "15")
)

# 回放 1x 速度下相邻两个事件的间隔（秒）
REPLAY_BASE_INTERVAL_S: float = float(
    os.environ.get("SWARMBOARD_REPLAY_BASE_INTERVAL_S", "1.0")
)

# 脚本驱动的延迟倍率（2.0 表示两倍速）
SCRIPTED_SPEED: float = float(os.environ.get("SWARMBOARD_SCRIPTED_SPEED", "1.0"))
