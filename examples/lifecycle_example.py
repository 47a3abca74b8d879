"""索引生命周期使用示例.

本文件展示了如何使用 MaintenanceCoordinator 管理版本化、按时间分桶的索引。
运行前需要一个本地 Elasticsearch 集群，地址可通过 INDEXFLOW_ES_HOSTS 指定。
"""

import logging
from datetime import UTC, datetime, timedelta

from indexflow import (
    ElasticsearchIndexStore,
    ESClientFactory,
    IndexDefinition,
    MaintenanceCoordinator,
    TimeGranularity,
    load_cluster_config,
)

logging.basicConfig(level=logging.INFO)

# 逻辑索引定义：进程启动时构造一次
EVENTS = IndexDefinition(
    name="events",
    version=1,
    granularity=TimeGranularity.DAILY,
    mappings={
        "properties": {
            "message": {"type": "text"},
            "level": {"type": "keyword"},
            "created_at": {"type": "date"},
        }
    },
    settings={"number_of_replicas": 0},
    max_index_age="30d",
)

EMPLOYEES = IndexDefinition(
    name="employees",
    version=1,
    mappings={"properties": {"email": {"type": "keyword"}}},
)


# ==================== 示例1：写入时间序列数据 ====================
def example_write_events(coordinator: MaintenanceCoordinator, es_client):
    """确保分桶存在后通过分桶别名写入."""
    now = datetime.now(tz=UTC)
    for days_ago in (0, 3, 10):
        timestamp = now - timedelta(days=days_ago)
        result = coordinator.ensure_index(EVENTS, timestamp)
        es_client.index(
            index=result.write_alias,
            document={"message": "hello", "level": "info", "created_at": timestamp},
        )
        print(f"{result.index_name}: {sorted(result.aliases)}")


# ==================== 示例2：周期维护 ====================
def example_maintain(coordinator: MaintenanceCoordinator):
    """删除过期分桶并收敛窗口别名."""
    result = coordinator.maintain(EVENTS)
    print(f"删除: {result.deleted}")
    print(f"别名调整: {result.reconciled}")
    if not result.is_success():
        print(f"错误摘要:\n{result.get_error_summary()}")


# ==================== 示例3：schema 升级 ====================
def example_schema_upgrade(coordinator: MaintenanceCoordinator):
    """新增字段原地应用，类型变更需要新版本."""
    coordinator.configure(EMPLOYEES)

    # 新增字段：原地追加
    with_name = IndexDefinition(
        name="employees",
        mappings={
            "properties": {"email": {"type": "keyword"}, "name": {"type": "text"}}
        },
    )
    print(coordinator.configure(with_name).added_fields)

    # 类型变更：记录冲突，由 v2 承接
    result = coordinator.configure(
        IndexDefinition("employees", mappings={"properties": {"email": {"type": "text"}}})
    )
    if result.has_conflicts():
        v2 = IndexDefinition(
            "employees", version=2, mappings={"properties": {"email": {"type": "text"}}}
        )
        coordinator.configure(v2)
        print(f"当前权威版本: v{coordinator.get_current_version(v2)}")


def main():
    """运行所有示例."""
    with ESClientFactory(load_cluster_config()) as factory:
        es_client = factory.get_client()
        coordinator = MaintenanceCoordinator(
            ElasticsearchIndexStore(es_client, request_timeout=10)
        )
        try:
            coordinator.configure(EVENTS)
            example_write_events(coordinator, es_client)
            example_maintain(coordinator)
            example_schema_upgrade(coordinator)
        finally:
            coordinator.delete(EVENTS)
            coordinator.delete(EMPLOYEES)


if __name__ == "__main__":
    main()
