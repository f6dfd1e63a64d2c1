"""Replay 引擎 -- 对已获取事件快照的按速渐进展示

只读：不访问存储，不创建、修改或删除任何事件。
与 Tick 引擎完全分离：Replay 只展示已持久化的历史，Tick 只创建新历史。
"""

import asyncio
import math
from collections.abc import AsyncIterator, Iterable

from .config import REPLAY_BASE_INTERVAL_S
from .exceptions import ValidationError
from .models.enums import EventKind
from .models.event import Event


class ReplayEngine:
    """事件快照回放器

    快照在构造时按 step 排序并冻结为 tuple；
    start_from_checkpoint=True 时从最后一个 CHECKPOINT 事件开始展示。
    """

    def __init__(
        self,
        snapshot: Iterable[Event],
        start_from_checkpoint: bool = False,
        speed: float = 1.0,
        base_interval_s: float = REPLAY_BASE_INTERVAL_S,
    ) -> None:
        self._snapshot: tuple[Event, ...] = tuple(sorted(snapshot, key=lambda e: e.step))
        self._start_offset = self._find_start_offset(start_from_checkpoint)
        self._base_interval_s = base_interval_s
        self._speed = 1.0
        self.set_speed(speed)
        self._cursor = self._start_offset

    def _find_start_offset(self, start_from_checkpoint: bool) -> int:
        if not start_from_checkpoint:
            return 0
        for index in range(len(self._snapshot) - 1, -1, -1):
            if self._snapshot[index].kind == EventKind.CHECKPOINT:
                return index
        return 0

    @property
    def snapshot(self) -> tuple[Event, ...]:
        return self._snapshot

    @property
    def start_offset(self) -> int:
        return self._start_offset

    @property
    def revealed_count(self) -> int:
        """已展示事件数（包含起始偏移之前的事件）"""
        return self._cursor

    @property
    def revealed(self) -> tuple[Event, ...]:
        return self._snapshot[: self._cursor]

    @property
    def remaining(self) -> int:
        return len(self._snapshot) - self._cursor

    @property
    def is_finished(self) -> bool:
        return self._cursor >= len(self._snapshot)

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def interval_s(self) -> float:
        """当前速度下相邻两个事件的间隔"""
        return self._base_interval_s / self._speed

    def set_speed(self, multiplier: float) -> None:
        """设置速度倍率，必须为有限正数（nan / inf 非法）"""
        if isinstance(multiplier, bool) or not isinstance(multiplier, int | float):
            raise ValidationError("speed must be a number")
        try:
            speed = float(multiplier)
        except OverflowError as e:
            raise ValidationError("speed is too large") from e
        if not math.isfinite(speed) or speed <= 0:
            raise ValidationError(f"speed must be a finite number > 0, got {multiplier}")
        self._speed = speed

    def advance(self) -> Event | None:
        """展示下一个事件；已结束时返回 None"""
        if self.is_finished:
            return None
        event = self._snapshot[self._cursor]
        self._cursor += 1
        return event

    def restart(self) -> None:
        """回到起始偏移重新展示"""
        self._cursor = self._start_offset

    async def play(self) -> AsyncIterator[Event]:
        """按当前速度逐个产出剩余事件

        每次迭代前读取 interval_s，因此播放过程中调整速度会立即生效。
        """
        first = True
        while not self.is_finished:
            if not first:
                await asyncio.sleep(self.interval_s)
            first = False
            event = self.advance()
            if event is not None:
                yield event
