"""索引维护协调模块.

MaintenanceCoordinator 是生命周期引擎的入口，组合分桶、别名计算、版本解析与
索引配置，提供两条主要路径：

- ensure_index: 写入路径，确保文档所属分桶存在且别名正确
- maintain: 周期性维护，删除过期分桶并把所有分桶的别名收敛到期望集合

两条路径都只依赖远程状态与传入的 ``now``，可以在多个进程中并发执行。

示例用法:
    >>> coordinator = MaintenanceCoordinator(store)
    >>> coordinator.configure(definition)
    >>> result = coordinator.ensure_index(definition, timestamp=event_time)
    >>> es_client.index(index=result.write_alias, document=doc)
    >>> coordinator.maintain(definition).raise_on_failure()
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ..cache import InMemoryVersionCache, VersionCache
from ..exceptions import IndexVanishedError
from ..store import IndexNotFoundError, IndexStore
from .aliases import compute_aliases, sorted_aliases
from .bucketing import (
    bucket_start,
    get_bucket,
    index_pattern,
    is_expired,
    parse_index_name,
    to_utc,
)
from .configurator import IndexConfigurator
from .exceptions import IndexValidationError
from .models import (
    Bucket,
    BucketAction,
    BucketOutcome,
    ConfigureResult,
    EnsureIndexResult,
    IndexDefinition,
    MaintenanceResult,
)
from .versioning import NothingExists, VersionResolver, observe_state, resolve_version

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class MaintenanceCoordinator:
    """索引生命周期协调器.

    Args:
        store: 远程索引存储
        cache: 版本缓存，默认使用进程内缓存
        now_func: 当前时间函数，默认 UTC 系统时钟；各操作也可以直接传入 ``now``
        cache_ttl: 版本缓存有效期，默认使用缓存自身的默认值（5 分钟）
    """

    def __init__(
        self,
        store: IndexStore,
        cache: VersionCache | None = None,
        now_func: Callable[[], datetime] | None = None,
        cache_ttl: timedelta | None = None,
    ):
        if store is None:
            raise ValueError("store 不能为 None")
        self.store = store
        self.resolver = VersionResolver(
            store,
            cache if cache is not None else InMemoryVersionCache(),
            cache_ttl=cache_ttl,
        )
        self.configurator = IndexConfigurator(store, self.resolver)
        self.now_func = now_func or _utc_now

    def _now(self, now: datetime | None) -> datetime:
        return to_utc(now if now is not None else self.now_func())

    # ------------------------------------------------------------------
    # 委托
    # ------------------------------------------------------------------

    def get_current_version(self, definition: IndexDefinition) -> int:
        """获取逻辑索引的权威版本."""
        return self.resolver.get_current_version(definition)

    def configure(
        self, definition: IndexDefinition, version: int | None = None
    ) -> ConfigureResult:
        """创建或增量更新索引（时间序列索引为索引模板）."""
        return self.configurator.configure(definition, version)

    def get_write_alias(
        self, definition: IndexDefinition, timestamp: datetime | None = None
    ) -> str:
        """写入文档时应使用的名称：时间序列为分桶别名，否则为逻辑名称."""
        bucket = get_bucket(definition, timestamp)
        return bucket.alias_name or definition.name

    def get_read_alias(self, definition: IndexDefinition) -> str:
        """查询时应使用的名称，覆盖权威版本的所有分桶."""
        return definition.name

    # ------------------------------------------------------------------
    # 写入路径
    # ------------------------------------------------------------------

    def ensure_index(
        self,
        definition: IndexDefinition,
        timestamp: datetime | None = None,
        now: datetime | None = None,
    ) -> EnsureIndexResult:
        """确保时间戳所属的分桶存在，且别名与当前时刻的期望集合一致.

        Args:
            definition: 索引定义
            timestamp: 文档时间戳，时间序列索引必填
            now: 当前时间，默认取 ``now_func()``

        Returns:
            EnsureIndexResult

        Raises:
            IndexValidationError: 缺少时间戳或分桶已超出保留期时抛出（不访问远程存储）
            IndexVanishedError: 分桶在操作过程中被并发删除时抛出，可重试
        """
        now = self._now(now)
        if definition.is_time_series and timestamp is None:
            raise IndexValidationError(
                f"时间序列索引 '{definition.name}' 需要提供 timestamp"
            )

        start = bucket_start(definition, timestamp) if timestamp is not None else None
        if is_expired(definition, start, now):
            raise IndexValidationError(
                f"时间戳 {timestamp} 所属分桶已超出索引 '{definition.name}' "
                f"的保留期 {definition.max_index_age}"
            )

        version = self.resolver.get_current_version(definition)
        bucket = get_bucket(definition, timestamp, version)
        target = compute_aliases(definition, now, start)
        result = EnsureIndexResult(
            index_name=bucket.index_name,
            write_alias=bucket.alias_name or definition.name,
            version=version,
            aliases=target,
        )

        live = self.store.get_aliases(bucket.index_name)
        if bucket.index_name not in live:
            if self.configurator.create_bucket(definition, bucket, target):
                result.created = True
                result.added_aliases = sorted_aliases(target)
                return result
            live = self.store.get_aliases(bucket.index_name)
            if bucket.index_name not in live:
                raise IndexVanishedError(f"索引 '{bucket.index_name}' 在创建后被删除")

        result.added_aliases, result.removed_aliases = self._reconcile(
            bucket.index_name, live[bucket.index_name], target
        )
        return result

    def _reconcile(
        self, index_name: str, live: set[str], target: frozenset[str] | set[str]
    ) -> tuple[list[str], list[str]]:
        """把索引的别名收敛到目标集合.

        Returns:
            (新增的别名, 移除的别名)

        Raises:
            IndexVanishedError: 索引已不存在时抛出
        """
        added = sorted_aliases(set(target) - set(live))
        removed = sorted_aliases(set(live) - set(target))
        for alias in added:
            try:
                self.store.add_alias(index_name, alias)
            except IndexNotFoundError as e:
                raise IndexVanishedError(f"索引 '{index_name}' 已被删除") from e
        for alias in removed:
            if not self.store.remove_alias(index_name, alias):
                if not self.store.index_exists(index_name):
                    raise IndexVanishedError(f"索引 '{index_name}' 已被删除")
        return added, removed

    # ------------------------------------------------------------------
    # 维护
    # ------------------------------------------------------------------

    def _target_aliases(
        self,
        definition: IndexDefinition,
        bucket: Bucket,
        authoritative: int | None,
        now: datetime,
    ) -> frozenset[str]:
        if bucket.version != authoritative:
            return frozenset()
        return compute_aliases(definition, now, bucket.start)

    def maintain(
        self, definition: IndexDefinition, now: datetime | None = None
    ) -> MaintenanceResult:
        """执行一次维护.

        1. 一次请求列出所有版本、所有分桶及其别名
        2. 删除超出保留期的分桶
        3. 权威版本的分桶收敛到 compute_aliases 的结果，其他版本的分桶移除所有别名

        单个分桶失败不会中断其他分桶，失败记录在结果中，
        调用方可通过 ``raise_on_failure()`` 转换为异常。

        Args:
            definition: 索引定义
            now: 当前时间，默认取 ``now_func()``

        Returns:
            MaintenanceResult
        """
        now = self._now(now)
        index_aliases = self.store.get_aliases(index_pattern(definition))
        previous = observe_state(definition, index_aliases)

        buckets: list[tuple[Bucket, set[str]]] = []
        for index_name in sorted(index_aliases):
            bucket = parse_index_name(definition, index_name)
            if bucket is None:
                logger.debug(f"索引 '{index_name}' 不属于 '{definition.name}'，跳过")
                continue
            buckets.append((bucket, index_aliases[index_name]))

        expired = [b for b, _ in buckets if is_expired(definition, b.start, now)]
        survivors = {
            b.index_name: aliases for b, aliases in buckets if b not in expired
        }
        state = observe_state(definition, survivors)
        authoritative = (
            None
            if isinstance(state, NothingExists)
            else resolve_version(state, definition.version)
        )
        result = MaintenanceResult(
            name=definition.name, now=now, authoritative_version=authoritative
        )

        for bucket in expired:
            result.outcomes.append(self._delete_bucket(bucket))

        for bucket, live in buckets:
            if bucket in expired:
                continue
            target = self._target_aliases(definition, bucket, authoritative, now)
            result.outcomes.append(self._reconcile_bucket(bucket, live, target))

        moved = resolve_version(previous, definition.version) != authoritative or any(
            definition.name in o.added_aliases or definition.name in o.removed_aliases
            for o in result.outcomes
        )
        if moved or isinstance(state, NothingExists):
            self.resolver.invalidate(definition)
        else:
            self.resolver.remember(definition, state)

        if result.is_success():
            logger.info(
                f"索引 '{definition.name}' 维护完成，权威版本: v{authoritative}，"
                f"删除: {result.deleted}，别名调整: {result.reconciled}"
            )
        else:
            logger.error(
                f"索引 '{definition.name}' 维护部分失败:\n{result.get_error_summary()}"
            )
        return result

    def _delete_bucket(self, bucket: Bucket) -> BucketOutcome:
        outcome = BucketOutcome(
            index_name=bucket.index_name,
            version=bucket.version,
            start=bucket.start,
            action=BucketAction.DELETED,
        )
        try:
            if not self.store.delete_index(bucket.index_name):
                outcome.action = BucketAction.VANISHED
        except Exception as e:
            logger.error(f"删除过期索引 '{bucket.index_name}' 失败: {e}")
            outcome.success = False
            outcome.error = str(e)
            outcome.error_type = type(e).__name__
        return outcome

    def _reconcile_bucket(
        self, bucket: Bucket, live: set[str], target: frozenset[str]
    ) -> BucketOutcome:
        outcome = BucketOutcome(
            index_name=bucket.index_name,
            version=bucket.version,
            start=bucket.start,
            action=BucketAction.UNCHANGED if live == target else BucketAction.RECONCILED,
        )
        if outcome.action is BucketAction.UNCHANGED:
            return outcome
        try:
            outcome.added_aliases, outcome.removed_aliases = self._reconcile(
                bucket.index_name, live, target
            )
        except IndexVanishedError:
            logger.warning(f"索引 '{bucket.index_name}' 在维护过程中被删除")
            outcome.action = BucketAction.VANISHED
        except Exception as e:
            logger.error(f"调整索引 '{bucket.index_name}' 的别名失败: {e}")
            outcome.success = False
            outcome.error = str(e)
            outcome.error_type = type(e).__name__
        return outcome

    # ------------------------------------------------------------------
    # 清理
    # ------------------------------------------------------------------

    def delete(self, definition: IndexDefinition) -> list[str]:
        """删除逻辑索引所有版本的物理索引（以及时间序列索引的模板）.

        主要用于测试环境与下线场景的清理。

        Returns:
            实际删除的物理索引名称
        """
        deleted: list[str] = []
        versions = {definition.version}
        for index_name in sorted(self.store.get_aliases(index_pattern(definition))):
            bucket = parse_index_name(definition, index_name)
            if bucket is None:
                continue
            versions.add(bucket.version)
            if self.store.delete_index(index_name):
                deleted.append(index_name)

        if definition.is_time_series:
            for version in sorted(versions):
                self.store.delete_index_template(f"{definition.name}-v{version}")

        self.resolver.invalidate(definition)
        logger.info(f"索引 '{definition.name}' 已清理，删除: {deleted}")
        return deleted
