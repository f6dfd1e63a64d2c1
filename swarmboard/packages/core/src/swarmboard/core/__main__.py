"""CLI 入口模块 -- python -m swarmboard.core <command>

支持的命令：
  rebuild-projections  从 events 表重建 missions 表的聚合字段
  verify-projections   校验 missions 缓存与事件折叠结果一致（只读）
"""

import asyncio
import sys

from .config import get_db_path

_COMMANDS = ("rebuild-projections", "verify-projections")


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m swarmboard.core <command>")
        print("命令:")
        print("  rebuild-projections  从 events 表重建 missions 表")
        print("  verify-projections   校验 missions 缓存与事件日志一致")
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-projections":
        asyncio.run(rebuild_projections())
    elif command == "verify-projections":
        drift_count = asyncio.run(verify_projections())
        sys.exit(1 if drift_count else 0)
    else:
        print(f"未知命令: {command}")
        print(f"可用命令: {', '.join(_COMMANDS)}")
        sys.exit(1)


async def rebuild_projections() -> None:
    """执行 Projection 重建"""
    from .projection import rebuild_all
    from .store import create_store_group

    db_path = get_db_path()

    print(f"数据库路径: {db_path}")
    print("开始重建 Projection...")

    store_group = await create_store_group(db_path)

    try:
        event_count = await rebuild_all(
            store_group.conn,
            store_group.event_store,
            store_group.mission_store,
        )
        print(f"重建完成，处理 {event_count} 条事件")
    finally:
        await store_group.close()


async def verify_projections() -> int:
    """对比缓存聚合与事件折叠结果，返回不一致的任务数"""
    from .projection import find_drift
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)

    try:
        drifts = await find_drift(store_group.event_store, store_group.mission_store)
    finally:
        await store_group.close()

    for drift in drifts:
        print(
            f"[drift] {drift.mission_id}: "
            f"cached step={drift.cached.current_step} status={drift.cached.status} / "
            f"folded step={drift.folded.current_step} status={drift.folded.status}"
        )
    if drifts:
        print(f"{len(drifts)} 个任务的缓存与事件日志不一致，可执行 rebuild-projections 修复")
    else:
        print("所有任务缓存与事件日志一致")
    return len(drifts)


if __name__ == "__main__":
    main()
