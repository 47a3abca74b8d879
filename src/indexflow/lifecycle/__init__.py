"""索引生命周期模块.

该模块负责逻辑索引的创建、版本管理、按时间分桶以及别名维护，包括：
- 时间分桶与物理索引命名
- 滚动时间窗口别名计算
- 权威 schema 版本解析
- 映射与设置的增量同步
- 过期分桶删除与别名收敛

示例用法:
    >>> from indexflow.lifecycle import (
    ...     IndexDefinition,
    ...     MaintenanceCoordinator,
    ...     TimeGranularity,
    ... )
    >>> definition = IndexDefinition(
    ...     name="events",
    ...     granularity=TimeGranularity.DAILY,
    ...     mappings={"properties": {"message": {"type": "text"}}},
    ...     max_index_age="30d",
    ... )
    >>> coordinator = MaintenanceCoordinator(store)
    >>> coordinator.configure(definition)
    >>> coordinator.ensure_index(definition, timestamp=event_time).write_alias
    'events-2024.05.01'
"""

from .aliases import compute_aliases, window_contains
from .bucketing import bucket_start, get_bucket, is_expired, parse_index_name
from .configurator import IndexConfigurator
from .coordinator import MaintenanceCoordinator
from .exceptions import (
    IndexValidationError,
    LifecycleError,
    MappingConflictError,
    PartialReconciliationError,
)
from .models import (
    DEFAULT_ALIAS_WINDOWS,
    AliasWindow,
    Bucket,
    BucketAction,
    BucketOutcome,
    ConfigureResult,
    EnsureIndexResult,
    IndexDefinition,
    MaintenanceResult,
    MappingConflict,
    TimeGranularity,
)
from .versioning import (
    AliasOwned,
    IndicesExistUnaliased,
    NothingExists,
    VersionResolver,
)

__all__ = [
    # 核心类
    "MaintenanceCoordinator",
    "IndexConfigurator",
    "VersionResolver",
    # 模型
    "IndexDefinition",
    "TimeGranularity",
    "AliasWindow",
    "DEFAULT_ALIAS_WINDOWS",
    "Bucket",
    "MappingConflict",
    "ConfigureResult",
    "EnsureIndexResult",
    "BucketAction",
    "BucketOutcome",
    "MaintenanceResult",
    # 版本状态
    "AliasOwned",
    "IndicesExistUnaliased",
    "NothingExists",
    # 纯函数
    "bucket_start",
    "get_bucket",
    "is_expired",
    "parse_index_name",
    "compute_aliases",
    "window_contains",
    # 异常类
    "LifecycleError",
    "IndexValidationError",
    "MappingConflictError",
    "PartialReconciliationError",
]
