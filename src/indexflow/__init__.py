"""indexflow - Elasticsearch 索引生命周期与别名维护工具包.

为按逻辑名称读写的应用管理物理索引：创建索引、管理 schema 版本、
按天或按月分桶，并周期性地删除过期分桶、收敛滚动时间窗口别名。

主要功能:
    - MaintenanceCoordinator: 写入路径的 ensure_index 与周期性 maintain
    - IndexDefinition: 逻辑索引定义（版本、分桶粒度、映射、保留期）
    - ElasticsearchIndexStore: 带退避重试的远程索引存储
    - ESClientFactory: Elasticsearch 客户端工厂

使用示例:
    from indexflow import (
        ESClientFactory,
        ElasticsearchIndexStore,
        IndexDefinition,
        MaintenanceCoordinator,
        TimeGranularity,
        load_cluster_config,
    )

    factory = ESClientFactory(load_cluster_config())
    coordinator = MaintenanceCoordinator(ElasticsearchIndexStore(factory.get_client()))
    definition = IndexDefinition("events", granularity=TimeGranularity.DAILY)
    coordinator.configure(definition)
    coordinator.maintain(definition).raise_on_failure()
"""

__version__ = "0.1.0"

# 导出缓存
from indexflow.cache import InMemoryVersionCache, VersionCache

# 导出连接组件
from indexflow.connection import (
    ClusterConfig,
    ConnectionConfig,
    ConnectionConfigError,
    ESClientFactory,
    load_cluster_config,
)

# 导出异常
from indexflow.exceptions import (
    IndexFlowError,
    IndexVanishedError,
    RemoteTransientError,
)

# 导出生命周期组件
from indexflow.lifecycle import (
    AliasWindow,
    EnsureIndexResult,
    IndexConfigurator,
    IndexDefinition,
    IndexValidationError,
    MaintenanceCoordinator,
    MaintenanceResult,
    MappingConflictError,
    PartialReconciliationError,
    TimeGranularity,
    VersionResolver,
)

# 导出存储
from indexflow.store import (
    ElasticsearchIndexStore,
    IndexAlreadyExistsError,
    IndexNotFoundError,
    IndexStore,
    IndexStoreError,
)

__all__ = [
    # 版本
    "__version__",
    # 生命周期
    "MaintenanceCoordinator",
    "IndexConfigurator",
    "VersionResolver",
    "IndexDefinition",
    "TimeGranularity",
    "AliasWindow",
    "EnsureIndexResult",
    "MaintenanceResult",
    # 存储
    "IndexStore",
    "ElasticsearchIndexStore",
    # 缓存
    "VersionCache",
    "InMemoryVersionCache",
    # 连接
    "ESClientFactory",
    "ClusterConfig",
    "ConnectionConfig",
    "load_cluster_config",
    # 异常
    "IndexFlowError",
    "RemoteTransientError",
    "IndexVanishedError",
    "IndexValidationError",
    "MappingConflictError",
    "PartialReconciliationError",
    "IndexStoreError",
    "IndexNotFoundError",
    "IndexAlreadyExistsError",
    "ConnectionConfigError",
]
