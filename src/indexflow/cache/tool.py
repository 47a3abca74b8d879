"""版本缓存实现模块."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import timedelta

logger = logging.getLogger(__name__)


class VersionCache(ABC):
    """已解析索引版本的缓存接口.

    缓存只是优化手段：条目丢失或过期最多导致一次额外的远程查询，
    不能影响版本解析的正确性。
    """

    @abstractmethod
    def get(self, key: str) -> int | None:
        """获取缓存的版本，不存在或已过期时返回 None."""

    @abstractmethod
    def set(self, key: str, version: int, ttl: timedelta | None = None) -> None:
        """写入版本，ttl 为 None 时使用实现的默认过期时间."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """移除单个条目."""

    @abstractmethod
    def remove_all(self) -> None:
        """清空所有条目，强制下一次解析走远程查询."""


class InMemoryVersionCache(VersionCache):
    """进程内带过期时间的版本缓存.

    Args:
        default_ttl: 默认过期时间，默认 5 分钟
        clock: 单调时钟函数（秒），主要用于测试，默认 time.monotonic

    Example:
        >>> cache = InMemoryVersionCache(default_ttl=timedelta(minutes=1))
        >>> cache.set("employees", 1)
        >>> cache.get("employees")
        1
    """

    def __init__(
        self,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], float] | None = None,
    ) -> None:
        if default_ttl.total_seconds() <= 0:
            raise ValueError(f"default_ttl 必须大于 0，当前值: {default_ttl}")
        self.default_ttl = default_ttl
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> int | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            version, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return version

    def set(self, key: str, version: int, ttl: timedelta | None = None) -> None:
        ttl = ttl or self.default_ttl
        with self._lock:
            self._entries[key] = (version, self._clock() + ttl.total_seconds())
        logger.debug(f"缓存索引版本: {key} -> {version}（{ttl}）")

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def remove_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
