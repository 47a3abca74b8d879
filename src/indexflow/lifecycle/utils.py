"""索引生命周期工具函数模块.

提供 ES 时间格式的校验与解析功能，用于保留期和别名窗口的配置。
"""

import re
from datetime import timedelta

# ES 时间格式正则：数字 + 时间单位（ms, s, m, h, d, w, M, y）
_TIME_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d|w|M|y)$")

# 时间单位到 timedelta 参数的转换映射
_TIME_UNIT_TO_DELTA: dict[str, dict[str, int]] = {
    "ms": {"milliseconds": 1},
    "s": {"seconds": 1},
    "m": {"minutes": 1},
    "h": {"hours": 1},
    "d": {"days": 1},
    "w": {"weeks": 1},
    "M": {"days": 30},  # 按30天算
    "y": {"days": 365},  # 按365天算
}


def validate_time_format(value: str) -> bool:
    """校验值是否符合 ES 时间格式.

    支持的时间单位：ms（毫秒）、s（秒）、m（分钟）、h（小时）、
    d（天）、w（周）、M（月）、y（年）。

    Args:
        value: 待校验的时间格式字符串，如 "30d", "1h", "7d", "1M"

    Returns:
        True 表示格式合法，False 表示格式不合法

    Examples:
        >>> validate_time_format("30d")
        True
        >>> validate_time_format("abc")
        False
    """
    if not isinstance(value, str) or not value:
        return False
    return _TIME_PATTERN.match(value) is not None


def parse_time_to_timedelta(value: str) -> timedelta:
    """将 ES 时间格式转换为 timedelta.

    Args:
        value: ES 时间格式字符串，如 "30d", "1h", "7d"

    Returns:
        对应的 timedelta

    Raises:
        ValueError: 当时间格式不合法时抛出

    Examples:
        >>> parse_time_to_timedelta("1d")
        datetime.timedelta(days=1)
        >>> parse_time_to_timedelta("1M")
        datetime.timedelta(days=30)
    """
    match = _TIME_PATTERN.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"不合法的 ES 时间格式: {value!r}")

    amount = int(match.group(1))
    unit_kwargs = _TIME_UNIT_TO_DELTA[match.group(2)]
    return timedelta(**{key: amount * factor for key, factor in unit_kwargs.items()})


def coerce_duration(value: timedelta | str | None, field_name: str) -> timedelta | None:
    """把 timedelta 或 ES 时间字符串统一为 timedelta.

    Raises:
        ValueError: 字符串格式不合法、类型不支持或时长为负数时抛出
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = parse_time_to_timedelta(value)
    if not isinstance(value, timedelta):
        raise ValueError(f"{field_name} 必须是 timedelta 或 ES 时间格式字符串: {value!r}")
    if value < timedelta(0):
        raise ValueError(f"{field_name} 不能为负数: {value}")
    return value
