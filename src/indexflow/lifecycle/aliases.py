"""分桶别名计算模块.

给定当前时间、分桶起始时间和索引定义，计算此刻应当指向该分桶的别名集合。
结果只取决于 ``(now, bucket_start, alias_windows)``，任何时候都可以重新计算，
不依赖历史状态。

窗口别名规则是声明式的 ``(suffix, duration)`` 列表，由按粒度选择的判定函数统一求值：

- 按天分桶: ``now.date() - bucket.date() <= duration``（按天数比较，边界包含）
- 按月分桶: 分桶所在月份与 ``[startOfMonth(now - duration), endOfMonth(now)]`` 有交集，
  即月内任意一天还在窗口内，整个月的分桶就保留该别名
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from .bucketing import start_of_day, start_of_month, to_utc
from .models import AliasWindow, Bucket, IndexDefinition, TimeGranularity

WindowPredicate = Callable[[datetime, datetime, timedelta], bool]


def _daily_window_contains(now: datetime, start: datetime, duration: timedelta) -> bool:
    return timedelta(0) <= start_of_day(now) - start_of_day(start) <= duration


def _monthly_window_contains(
    now: datetime, start: datetime, duration: timedelta
) -> bool:
    bucket_month = start_of_month(start)
    window_start = start_of_month(to_utc(now) - duration)
    return window_start <= bucket_month <= start_of_month(now)


_WINDOW_PREDICATES: dict[TimeGranularity, WindowPredicate] = {
    TimeGranularity.DAILY: _daily_window_contains,
    TimeGranularity.MONTHLY: _monthly_window_contains,
}


def window_contains(
    granularity: TimeGranularity,
    window: AliasWindow,
    now: datetime,
    bucket_start: datetime,
) -> bool:
    """判断分桶当前是否落在窗口别名的时间窗口内.

    Args:
        granularity: 分桶粒度
        window: 窗口别名规则
        now: 当前时间
        bucket_start: 分桶起始时间

    Returns:
        是否应挂载该窗口别名
    """
    predicate = _WINDOW_PREDICATES.get(granularity)
    if predicate is None:
        return False
    return predicate(now, bucket_start, window.duration)


def window_alias_name(definition: IndexDefinition, window: AliasWindow) -> str:
    return f"{definition.name}-{window.suffix}"


def compute_aliases(
    definition: IndexDefinition, now: datetime, bucket_start: datetime | None
) -> frozenset[str]:
    """计算此刻应指向分桶的别名集合.

    - 总是包含逻辑名称
    - 时间序列索引额外包含分桶别名，以及窗口包含该分桶的所有窗口别名

    Args:
        definition: 索引定义
        now: 当前时间
        bucket_start: 分桶起始时间，非时间序列索引为 None

    Returns:
        别名集合（无序）

    Example:
        >>> definition = IndexDefinition("logs", granularity=TimeGranularity.DAILY)
        >>> now = datetime(2016, 2, 29, tzinfo=UTC)
        >>> sorted_aliases(compute_aliases(definition, now, now))
        ['logs', 'logs-2016.02.29', 'logs-last30days', 'logs-last60days', 'logs-last7days', 'logs-today']
    """
    aliases = {definition.name}
    if not definition.is_time_series or bucket_start is None:
        return frozenset(aliases)

    bucket = Bucket(
        definition.name, definition.version, definition.granularity, bucket_start
    )
    aliases.add(bucket.alias_name)
    for window in definition.alias_windows:
        if window_contains(definition.granularity, window, now, bucket_start):
            aliases.add(window_alias_name(definition, window))
    return frozenset(aliases)


def sorted_aliases(aliases) -> list[str]:
    """别名集合的稳定排序表示，用于日志与诊断."""
    return sorted(aliases)
