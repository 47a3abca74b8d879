"""索引生命周期数据模型定义模块.

提供索引定义、分桶以及各类操作结果的 dataclass 模型，包括：
- TimeGranularity: 按时间分区的粒度
- AliasWindow: 滚动时间窗口别名规则
- IndexDefinition: 逻辑索引定义
- Bucket: 物理分桶
- ConfigureResult / EnsureIndexResult / MaintenanceResult: 操作结果
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from ..store.utils import validate_index_name
from .exceptions import IndexValidationError, PartialReconciliationError
from .utils import coerce_duration


class TimeGranularity(str, Enum):
    """按时间分区的粒度."""

    NONE = "none"  # 不分区，仅按版本命名
    DAILY = "daily"
    MONTHLY = "monthly"

    @property
    def is_time_series(self) -> bool:
        """是否按时间分桶."""
        return self is not TimeGranularity.NONE

    @property
    def suffix_format(self) -> str | None:
        """分桶名称中的日期格式."""
        return _SUFFIX_FORMATS.get(self)


_SUFFIX_FORMATS: dict[TimeGranularity, str] = {
    TimeGranularity.DAILY: "%Y.%m.%d",
    TimeGranularity.MONTHLY: "%Y.%m",
}


@dataclass(frozen=True)
class AliasWindow:
    """滚动时间窗口别名规则.

    分桶日期落在窗口内时，别名 ``{logical_name}-{suffix}`` 指向该分桶。

    Attributes:
        suffix: 别名后缀（如 "today"、"last7days"）
        duration: 窗口长度，timedelta 或 ES 时间格式字符串（如 "7d"）

    Raises:
        IndexValidationError: 当后缀为空或时长不合法时抛出

    Examples:
        >>> AliasWindow("last7days", "7d")
        AliasWindow(suffix='last7days', duration=datetime.timedelta(days=7))
    """

    suffix: str
    duration: timedelta

    def __post_init__(self) -> None:
        if not validate_index_name(self.suffix):
            raise IndexValidationError(f"别名后缀不合法: {self.suffix!r}")
        try:
            duration = coerce_duration(self.duration, "duration")
        except ValueError as e:
            raise IndexValidationError(str(e)) from e
        if duration is None:
            raise IndexValidationError("duration 不能为空")
        object.__setattr__(self, "duration", duration)


# 时间序列索引的默认窗口别名
DEFAULT_ALIAS_WINDOWS: tuple[AliasWindow, ...] = (
    AliasWindow("today", timedelta(days=1)),
    AliasWindow("last7days", timedelta(days=7)),
    AliasWindow("last30days", timedelta(days=30)),
    AliasWindow("last60days", timedelta(days=60)),
)


@dataclass
class IndexDefinition:
    """逻辑索引定义.

    在进程配置阶段按逻辑索引构造一次，生命周期与进程相同。除 ``max_index_age``
    外构造后不应再修改；``max_index_age`` 支持在运行时调整保留策略，
    赋值字符串时会按 ES 时间格式解析。

    Attributes:
        name: 逻辑索引名称，调用方读写时使用的与版本、时间无关的名称
        version: 当前代码声明的 schema 版本（正整数）
        granularity: 时间分区粒度
        mappings: 索引映射（``{"properties": {...}}``）
        settings: 索引设置
        alias_windows: 窗口别名规则；时间序列索引未指定时使用默认的 1/7/30/60 天窗口
        max_index_age: 保留时长，None 表示不限

    Raises:
        IndexValidationError: 当参数不合法时抛出

    Examples:
        >>> definition = IndexDefinition(
        ...     name="employees",
        ...     version=2,
        ...     granularity=TimeGranularity.DAILY,
        ...     mappings={"properties": {"email": {"type": "keyword"}}},
        ...     max_index_age="45d",
        ... )
    """

    name: str
    version: int = 1
    granularity: TimeGranularity = TimeGranularity.NONE
    mappings: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    alias_windows: list[AliasWindow] | None = None
    max_index_age: timedelta | None = None

    def __post_init__(self) -> None:
        """校验索引定义参数合法性."""
        if not validate_index_name(self.name):
            raise IndexValidationError(
                f"索引名称 '{self.name}' 不符合 Elasticsearch 规范"
            )
        if isinstance(self.version, bool) or not isinstance(self.version, int):
            raise IndexValidationError(f"version 必须是整数，当前值: {self.version!r}")
        if self.version < 1:
            raise IndexValidationError(f"version 必须为正整数，当前值: {self.version}")

        self.granularity = TimeGranularity(self.granularity)

        if self.alias_windows is None:
            self.alias_windows = (
                list(DEFAULT_ALIAS_WINDOWS) if self.granularity.is_time_series else []
            )
        elif self.alias_windows and not self.granularity.is_time_series:
            raise IndexValidationError("非时间序列索引不支持窗口别名")
        else:
            self.alias_windows = list(self.alias_windows)

        suffixes = [window.suffix for window in self.alias_windows]
        duplicated = sorted({s for s in suffixes if suffixes.count(s) > 1})
        if duplicated:
            raise IndexValidationError(f"窗口别名后缀重复: {duplicated}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "max_index_age":
            try:
                value = coerce_duration(value, "max_index_age")
            except ValueError as e:
                raise IndexValidationError(str(e)) from e
            if value is not None and value <= timedelta(0):
                raise IndexValidationError(f"max_index_age 必须大于 0，当前值: {value}")
        super().__setattr__(name, value)

    @property
    def is_time_series(self) -> bool:
        """是否按时间分桶."""
        return self.granularity.is_time_series

    @property
    def template_name(self) -> str:
        """当前版本的索引模板名称."""
        return f"{self.name}-v{self.version}"


@dataclass(frozen=True)
class Bucket:
    """物理分桶.

    由逻辑名称、版本和分桶起始时间唯一确定；非时间序列索引的 start 为 None。

    Attributes:
        name: 逻辑索引名称
        version: schema 版本
        granularity: 时间分区粒度
        start: 分桶起始时间（UTC）
    """

    name: str
    version: int
    granularity: TimeGranularity
    start: datetime | None = None

    @property
    def suffix(self) -> str | None:
        """分桶日期后缀，如 "2016.02.29" 或 "2016.02"."""
        fmt = self.granularity.suffix_format
        if fmt is None or self.start is None:
            return None
        return self.start.strftime(fmt)

    @property
    def index_name(self) -> str:
        """物理索引名称."""
        if self.suffix is None:
            return f"{self.name}-v{self.version}"
        return f"{self.name}-v{self.version}-{self.suffix}"

    @property
    def alias_name(self) -> str | None:
        """与版本无关的分桶别名，写入方通过它定位分桶."""
        if self.suffix is None:
            return None
        return f"{self.name}-{self.suffix}"


@dataclass
class MappingConflict:
    """字段映射类型冲突.

    Attributes:
        index_name: 物理索引名称
        field: 字段路径（嵌套字段用 "." 连接）
        live_type: 索引中现有的字段类型
        declared_type: 定义中声明的字段类型
    """

    index_name: str
    field: str
    live_type: str
    declared_type: str


@dataclass
class ConfigureResult:
    """IndexConfigurator.configure 的结果.

    Attributes:
        name: 逻辑索引名称
        version: 配置的版本
        created: 新创建的物理索引
        updated: 已存在且被检查过的物理索引
        added_fields: 每个索引新增的字段
        conflicts: 被跳过的字段类型冲突
        updated_settings: 每个索引更新的动态设置
        skipped_settings: 无法原地修改而被跳过的静态设置
        template_updated: 是否写入了索引模板
        aliases_added: 新增的 (索引, 别名) 对
    """

    name: str
    version: int
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    added_fields: dict[str, list[str]] = field(default_factory=dict)
    conflicts: list[MappingConflict] = field(default_factory=list)
    updated_settings: dict[str, list[str]] = field(default_factory=dict)
    skipped_settings: list[str] = field(default_factory=list)
    template_updated: bool = False
    aliases_added: list[tuple[str, str]] = field(default_factory=list)

    def has_conflicts(self) -> bool:
        """是否存在需要新版本才能应用的映射变更."""
        return bool(self.conflicts)

    def has_changes(self) -> bool:
        """本次配置是否产生了远程写入."""
        return bool(
            self.created
            or self.added_fields
            or self.updated_settings
            or self.template_updated
            or self.aliases_added
        )


@dataclass
class EnsureIndexResult:
    """MaintenanceCoordinator.ensure_index 的结果.

    Attributes:
        index_name: 物理索引名称
        write_alias: 写入应使用的名称（时间序列为分桶别名，否则为逻辑名称）
        version: 分桶所属版本
        created: 本次调用是否创建了索引
        aliases: 分桶当前应有的别名集合
        added_aliases: 本次新增的别名
        removed_aliases: 本次移除的别名
    """

    index_name: str
    write_alias: str
    version: int
    created: bool = False
    aliases: frozenset[str] = frozenset()
    added_aliases: list[str] = field(default_factory=list)
    removed_aliases: list[str] = field(default_factory=list)


class BucketAction(str, Enum):
    """维护过程中对单个分桶执行的动作."""

    UNCHANGED = "unchanged"
    RECONCILED = "reconciled"
    DELETED = "deleted"
    VANISHED = "vanished"  # 处理过程中已被其他调用方删除


@dataclass
class BucketOutcome:
    """单个分桶的维护结果.

    Attributes:
        index_name: 物理索引名称
        version: 分桶版本
        start: 分桶起始时间
        action: 执行的动作（失败时为计划执行的动作）
        added_aliases: 新增的别名
        removed_aliases: 移除的别名
        success: 是否成功
        error: 错误信息
        error_type: 异常类型名称
    """

    index_name: str
    version: int
    start: datetime | None
    action: BucketAction
    added_aliases: list[str] = field(default_factory=list)
    removed_aliases: list[str] = field(default_factory=list)
    success: bool = True
    error: str | None = None
    error_type: str | None = None


@dataclass
class MaintenanceResult:
    """MaintenanceCoordinator.maintain 的汇总结果.

    单个分桶失败不会中断其他分桶的处理，所有结果都汇总在 outcomes 中。

    Attributes:
        name: 逻辑索引名称
        now: 本次维护使用的当前时间
        authoritative_version: 本次维护认定的权威版本，没有任何索引时为 None
        outcomes: 每个分桶的处理结果
    """

    name: str
    now: datetime
    authoritative_version: int | None = None
    outcomes: list[BucketOutcome] = field(default_factory=list)

    @property
    def deleted(self) -> list[str]:
        """被删除的过期分桶."""
        return [
            o.index_name
            for o in self.outcomes
            if o.success and o.action is BucketAction.DELETED
        ]

    @property
    def reconciled(self) -> list[str]:
        """别名发生变化的分桶."""
        return [
            o.index_name
            for o in self.outcomes
            if o.success and o.action is BucketAction.RECONCILED
        ]

    @property
    def failures(self) -> list[BucketOutcome]:
        """处理失败的分桶."""
        return [o for o in self.outcomes if not o.success]

    def is_success(self) -> bool:
        """判断所有分桶是否都处理成功."""
        return not self.failures

    def get_error_summary(self) -> str:
        """获取错误摘要."""
        failures = self.failures
        if not failures:
            return "No errors"
        summary = f"Total errors: {len(failures)}\n"
        for i, outcome in enumerate(failures[:10], 1):  # 只显示前10个错误
            summary += (
                f"{i}. [{outcome.action.value}] Index: {outcome.index_name}, "
                f"Error: {outcome.error_type}: {outcome.error}\n"
            )
        if len(failures) > 10:
            summary += f"... and {len(failures) - 10} more errors\n"
        return summary

    def raise_on_failure(self) -> "MaintenanceResult":
        """存在失败分桶时抛出 PartialReconciliationError，否则返回自身.

        Raises:
            PartialReconciliationError: 当任一分桶处理失败时抛出
        """
        if not self.is_success():
            raise PartialReconciliationError(
                f"索引 '{self.name}' 维护部分失败:\n{self.get_error_summary()}",
                result=self,
            )
        return self
