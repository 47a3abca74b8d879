"""时间分桶模块.

把时间戳映射到所属分桶（按天或按月，UTC），并负责物理索引名称的生成与解析。
所有函数都是纯函数：不访问时钟，不做 I/O，``timestamp`` 与 ``now`` 均由调用方传入。

命名约定:
    - 非时间序列: ``{name}-v{version}``
    - 按天分桶: ``{name}-v{version}-YYYY.MM.DD``，分桶别名 ``{name}-YYYY.MM.DD``
    - 按月分桶: ``{name}-v{version}-YYYY.MM``，分桶别名 ``{name}-YYYY.MM``

示例用法:
    >>> definition = IndexDefinition("logs", granularity=TimeGranularity.MONTHLY)
    >>> bucket_start(definition, datetime(2016, 2, 29, 13, 5, tzinfo=UTC))
    datetime.datetime(2016, 2, 1, 0, 0, tzinfo=datetime.timezone.utc)
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from .models import Bucket, IndexDefinition, TimeGranularity


def to_utc(dt: datetime) -> datetime:
    """规范化为 UTC tz-aware datetime.

    - naive datetime 视为 UTC，并附加 tzinfo=UTC
    - tz-aware datetime 转换为 UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def start_of_day(dt: datetime) -> datetime:
    return to_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt).replace(day=1)


def add_months(month_start: datetime, months: int) -> datetime:
    """在月初时间上加减整月."""
    index = month_start.year * 12 + (month_start.month - 1) + months
    return month_start.replace(year=index // 12, month=index % 12 + 1, day=1)


def truncate(granularity: TimeGranularity, timestamp: datetime) -> datetime | None:
    """按粒度截断时间戳，非时间序列返回 None."""
    if granularity is TimeGranularity.DAILY:
        return start_of_day(timestamp)
    if granularity is TimeGranularity.MONTHLY:
        return start_of_month(timestamp)
    return None


def bucket_start(definition: IndexDefinition, timestamp: datetime) -> datetime | None:
    """计算时间戳所属分桶的起始时间.

    Args:
        definition: 索引定义
        timestamp: 文档时间戳

    Returns:
        分桶起始时间（UTC）；非时间序列索引返回 None 作为唯一分桶的标记
    """
    return truncate(definition.granularity, timestamp)


def next_bucket_start(
    granularity: TimeGranularity, start: datetime | None
) -> datetime | None:
    """计算下一个分桶的起始时间（即当前分桶的结束边界，不含）."""
    if start is None:
        return None
    if granularity is TimeGranularity.DAILY:
        return start_of_day(start) + timedelta(days=1)
    if granularity is TimeGranularity.MONTHLY:
        return add_months(start_of_month(start), 1)
    return None


def get_bucket(
    definition: IndexDefinition, timestamp: datetime | None, version: int | None = None
) -> Bucket:
    """获取时间戳所属的分桶.

    Args:
        definition: 索引定义
        timestamp: 文档时间戳，非时间序列索引可传 None
        version: 分桶版本，默认使用定义中的版本
    """
    if definition.is_time_series and timestamp is None:
        raise ValueError(f"时间序列索引 '{definition.name}' 需要提供 timestamp")
    start = bucket_start(definition, timestamp) if timestamp is not None else None
    return Bucket(
        name=definition.name,
        version=version or definition.version,
        granularity=definition.granularity,
        start=start,
    )


def index_pattern(definition: IndexDefinition) -> str:
    """匹配该逻辑索引所有版本、所有分桶的通配模式."""
    return f"{definition.name}-v*"


def parse_bucket_suffix(granularity: TimeGranularity, suffix: str) -> datetime | None:
    """解析分桶日期后缀，不符合格式时返回 None."""
    fmt = granularity.suffix_format
    if fmt is None:
        return None
    try:
        parsed = datetime.strptime(suffix, fmt)
    except ValueError:
        return None
    # strptime 接受不补零的月份和日期，这里要求与格式化结果完全一致
    if parsed.strftime(fmt) != suffix:
        return None
    return parsed.replace(tzinfo=UTC)


def parse_index_name(definition: IndexDefinition, index_name: str) -> Bucket | None:
    """把物理索引名称解析为分桶.

    名称不属于该逻辑索引、或与定义的时间粒度不符时返回 None。

    Examples:
        >>> definition = IndexDefinition("logs", granularity=TimeGranularity.DAILY)
        >>> parse_index_name(definition, "logs-v2-2016.02.29").version
        2
        >>> parse_index_name(definition, "logs-v2") is None
        True
    """
    match = re.fullmatch(
        rf"{re.escape(definition.name)}-v(\d+)(?:-(.+))?", index_name
    )
    if match is None:
        return None

    version = int(match.group(1))
    if version < 1:
        return None

    suffix = match.group(2)
    if not definition.is_time_series:
        if suffix is not None:
            return None
        return Bucket(definition.name, version, definition.granularity)

    if suffix is None:
        return None
    start = parse_bucket_suffix(definition.granularity, suffix)
    if start is None:
        return None
    return Bucket(definition.name, version, definition.granularity, start)


def is_expired(
    definition: IndexDefinition, start: datetime | None, now: datetime
) -> bool:
    """判断分桶是否超出保留期.

    分桶的整个时间跨度 ``[start, next_start)`` 都早于 ``now - max_index_age`` 时视为过期，
    即 ``now - next_start >= max_index_age``。未设置保留期或非时间序列分桶永不过期。

    Args:
        definition: 索引定义
        start: 分桶起始时间
        now: 当前时间
    """
    max_age = definition.max_index_age
    if max_age is None or start is None:
        return False
    end = next_bucket_start(definition.granularity, start)
    if end is None:
        return False
    return to_utc(now) - end >= max_age
