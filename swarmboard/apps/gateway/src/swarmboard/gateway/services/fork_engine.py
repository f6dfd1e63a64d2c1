"""ForkEngine -- 复制事件日志前缀，创建独立的新任务血缘

fork 点超过已有历史时静默下调到实际最大 step。
复制在创建时一次完成（copy-on-write），之后两条血缘互不影响。
"""

from datetime import UTC, datetime

import structlog
from swarmboard.core.exceptions import MissionNotFoundError, NotForkableError
from swarmboard.core.models import Mission, MissionLineage
from swarmboard.core.projection import fold
from swarmboard.core.store import StoreGroup
from swarmboard.core.store.transaction import (
    create_mission_with_events,
    translate_storage_errors,
)
from swarmboard.core.validation import ensure_mission_id, ensure_step, new_id

log = structlog.get_logger()


class ForkEngine:
    """Fork 引擎"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def fork(self, parent_mission_id: str, fork_step: int) -> str:
        """从父任务的 fork_step（含）处分叉

        Returns:
            新任务 ID

        Raises:
            ValidationError: 参数非法
            MissionNotFoundError: 父任务不存在
            NotForkableError: fork_step 及之前没有任何事件
            StorageError: 存储失败，不会留下半个任务
        """
        ensure_mission_id(parent_mission_id, "parent_mission_id")
        # 超出存储范围的 fork 点与超出历史一样，只是下调
        query_step = ensure_step(fork_step, "fork_step", clamp=True)

        with translate_storage_errors("load_fork_source"):
            parent = await self._stores.mission_store.get_mission(parent_mission_id)
            if parent is None:
                raise MissionNotFoundError(parent_mission_id)
            # step 唯一且为正整数，不超过 query_step 的事件最多 query_step 条
            source_events = await self._stores.event_store.list_events(
                parent_mission_id, max_step=query_step, limit=query_step
            )

        if not source_events:
            raise NotForkableError(parent_mission_id, fork_step)

        actual_fork_step = source_events[-1].step
        now = datetime.now(UTC)
        mission_id = new_id()

        copied = [
            event.model_copy(update={"event_id": new_id(), "mission_id": mission_id})
            for event in source_events
        ]

        # 分叉点及之前的事件不参与终态判定，新任务总是从 running 开始
        aggregate = fold(copied, status_after_step=actual_fork_step)

        mission = Mission(
            mission_id=mission_id,
            title=f"{parent.title} (fork)",
            created_at=now,
            updated_at=now,
            lineage=MissionLineage(
                parent_mission_id=parent_mission_id,
                branch_from_step=actual_fork_step,
            ),
            run_mode=parent.run_mode,
        ).with_aggregate(aggregate)

        await create_mission_with_events(
            self._stores.conn,
            self._stores.mission_store,
            self._stores.event_store,
            mission,
            copied,
        )

        log.info(
            "mission_forked",
            mission_id=mission_id,
            parent_mission_id=parent_mission_id,
            requested_step=fork_step,
            branch_from_step=actual_fork_step,
            copied_events=len(copied),
        )
        return mission_id
