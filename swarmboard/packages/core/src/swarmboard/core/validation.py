"""输入校验 -- 在任何写入之前拒绝非法输入

所有函数在失败时抛出 ValidationError，成功时返回规范化后的值。
"""

from enum import StrEnum
from typing import TypeVar

from ulid import ULID

from .exceptions import ValidationError

E = TypeVar("E", bound=StrEnum)

# SQLite INTEGER 上限
MAX_STEP = 2**63 - 1


def new_id() -> str:
    """生成新的 ULID 字符串"""
    return str(ULID())


def ensure_mission_id(value: str, field: str = "mission_id") -> str:
    """校验 ULID 格式的任务 ID"""
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    try:
        ULID.from_str(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field} format: {value!r}") from e
    return value


def ensure_step(value: int, field: str = "step", clamp: bool = False) -> int:
    """校验正整数 step（bool 不算整数）

    Args:
        clamp: True 时超过 MAX_STEP 的值下调为 MAX_STEP，否则视为非法
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 1:
        raise ValidationError(f"{field} must be an integer >= 1")
    if value > MAX_STEP:
        if clamp:
            return MAX_STEP
        raise ValidationError(f"{field} must be an integer <= {MAX_STEP}")
    return value


def parse_enum(enum_cls: type[E], value: str, field: str) -> E:
    """将字符串解析为枚举值，未知值抛出 ValidationError"""
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field} {value!r}. Must be one of: {allowed}"
        ) from e
