"""索引版本解析模块.

确定逻辑索引当前的权威 schema 版本。远程状态被归纳为三种显式状态，
再由唯一的解析函数按优先级给出版本：

1. ``AliasOwned``: 逻辑名称别名指向若干版本的索引，取其中最小版本
2. ``IndicesExistUnaliased``: 有物理索引但没有逻辑名称别名，取现存最小版本
3. ``NothingExists``: 什么都不存在，使用调用方构造时声明的版本
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from ..cache import VersionCache
from ..store import IndexStore
from ..typing import IndexAliasMap
from .bucketing import index_pattern, parse_index_name
from .models import IndexDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AliasOwned:
    """逻辑名称别名指向的版本中的最小版本."""

    version: int


@dataclass(frozen=True)
class IndicesExistUnaliased:
    """物理索引存在但没有逻辑名称别名时的最小版本."""

    min_version: int


@dataclass(frozen=True)
class NothingExists:
    """没有任何物理索引."""


VersionState = AliasOwned | IndicesExistUnaliased | NothingExists


def observe_state(
    definition: IndexDefinition, index_aliases: IndexAliasMap
) -> VersionState:
    """根据远程索引与别名归纳版本状态.

    Args:
        definition: 索引定义
        index_aliases: ``get_aliases("{name}-v*")`` 的结果

    Returns:
        版本状态
    """
    versions: set[int] = set()
    owners: set[int] = set()
    for index_name, aliases in index_aliases.items():
        bucket = parse_index_name(definition, index_name)
        if bucket is None:
            continue
        versions.add(bucket.version)
        if definition.name in aliases:
            owners.add(bucket.version)

    if owners:
        return AliasOwned(min(owners))
    if versions:
        return IndicesExistUnaliased(min(versions))
    return NothingExists()


def resolve_version(state: VersionState, requested: int) -> int:
    """按 别名 → 现存索引 → 请求版本 的优先级解析权威版本."""
    if isinstance(state, AliasOwned):
        return state.version
    if isinstance(state, IndicesExistUnaliased):
        return state.min_version
    return requested


class VersionResolver:
    """权威版本解析器.

    先查缓存，未命中时检查远程索引与别名状态，再把结果写回缓存。缓存只是优化：
    读写缓存失败只记录警告，最多多一次远程查询，不会导致错误的版本。

    ``NothingExists`` 状态的结果不写入缓存，因为它只是回显调用方自己的版本，
    写入后会让其他版本的实例读到错误的值。

    Args:
        store: 远程索引存储
        cache: 版本缓存，None 表示不使用缓存
        cache_ttl: 缓存条目有效期，None 表示使用缓存自身的默认值

    Example:
        >>> resolver = VersionResolver(store, InMemoryVersionCache())
        >>> resolver.get_current_version(definition)
        1
    """

    def __init__(
        self,
        store: IndexStore,
        cache: VersionCache | None = None,
        cache_ttl: timedelta | None = None,
    ):
        self.store = store
        self.cache = cache
        self.cache_ttl = cache_ttl

    def _cache_get(self, key: str) -> int | None:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"读取版本缓存 '{key}' 失败，改为查询远程状态: {e}")
            return None

    def _cache_set(self, key: str, version: int) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, version, ttl=self.cache_ttl)
        except Exception as e:
            logger.warning(f"写入版本缓存 '{key}' 失败: {e}")

    def observe(self, definition: IndexDefinition) -> VersionState:
        """查询远程状态并归纳为版本状态（不读写缓存）."""
        return observe_state(definition, self.store.get_aliases(index_pattern(definition)))

    def get_current_version(
        self, definition: IndexDefinition, use_cache: bool = True
    ) -> int:
        """获取逻辑索引的权威版本.

        Args:
            definition: 索引定义
            use_cache: 是否先查缓存，False 时总是读取远程状态（结果仍会写回缓存）

        Returns:
            权威版本号
        """
        if use_cache:
            cached = self._cache_get(definition.name)
            if cached is not None:
                return cached

        state = self.observe(definition)
        version = resolve_version(state, definition.version)
        self.remember(definition, state)
        logger.debug(f"索引 '{definition.name}' 版本状态: {state}，权威版本: {version}")
        return version

    def remember(self, definition: IndexDefinition, state: VersionState) -> None:
        """把可缓存的版本状态写回缓存."""
        if isinstance(state, NothingExists):
            return
        self._cache_set(definition.name, resolve_version(state, definition.version))

    def invalidate(self, definition: IndexDefinition) -> None:
        """移除逻辑索引的缓存条目."""
        if self.cache is None:
            return
        try:
            self.cache.remove(definition.name)
        except Exception as e:
            logger.warning(f"移除版本缓存 '{definition.name}' 失败: {e}")
