"""SSEHub -- 内存中事件广播器

每个订阅者持有一个 asyncio.Queue，按 mission_id 分组。
只用于实时推送新事件；历史状态始终从存储读取。
"""

import asyncio
from collections import defaultdict

from swarmboard.core.models.event import Event


class SSEHub:
    """SSE 事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # mission_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, mission_id: str) -> asyncio.Queue:
        """订阅指定任务的事件流

        Args:
            mission_id: 要订阅的任务 ID

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[mission_id].add(queue)
        return queue

    async def unsubscribe(self, mission_id: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        subscribers = self._subscribers.get(mission_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[mission_id]

    def subscriber_count(self, mission_id: str) -> int:
        return len(self._subscribers.get(mission_id, ()))

    async def broadcast(self, mission_id: str, event: Event) -> None:
        """向指定任务的所有订阅者广播事件

        队列已满的订阅者被视为失效并移除，不阻塞写入路径。
        """
        dead_queues = []
        for queue in self._subscribers.get(mission_id, set()):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[mission_id].discard(q)
        if mission_id in self._subscribers and not self._subscribers[mission_id]:
            del self._subscribers[mission_id]
