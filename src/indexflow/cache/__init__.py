"""索引版本缓存模块."""

from .tool import InMemoryVersionCache, VersionCache

__all__ = [
    "VersionCache",
    "InMemoryVersionCache",
]
