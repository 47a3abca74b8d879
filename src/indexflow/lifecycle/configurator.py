"""索引配置模块.

负责物理索引（或时间序列索引的模板）的创建，以及把定义中的映射与设置
增量同步到已有索引：

- 新增字段通过一次 ``put_mapping`` 追加
- 字段类型变更无法原地应用，记录为 MappingConflict 并跳过，需要创建新的索引版本
- 动态设置直接更新，静态设置（分片数、分析器等）只记录警告
"""

import logging
from dataclasses import replace
from typing import Any

from ..store import IndexAlreadyExistsError, IndexStore
from ..typing import FlatMapping, FlatSettings
from .bucketing import get_bucket, index_pattern, parse_index_name
from .models import Bucket, ConfigureResult, IndexDefinition, MappingConflict
from .versioning import VersionResolver

logger = logging.getLogger(__name__)

# 只能在创建索引时指定的设置
STATIC_SETTINGS: tuple[str, ...] = (
    "number_of_shards",
    "analysis",
    "codec",
    "routing_partition_size",
    "sort",
)


def flatten_properties(properties: dict[str, Any], prefix: str = "") -> FlatMapping:
    """把嵌套的 properties 展开为 ``{"a.b": 字段定义}``.

    字段定义中不包含子字段的 ``properties``；含子字段但未声明类型的字段视为 object。

    Examples:
        >>> flatten_properties({"user": {"properties": {"email": {"type": "keyword"}}}})
        {'user': {'type': 'object'}, 'user.email': {'type': 'keyword'}}
    """
    flat: FlatMapping = {}
    for name, definition in (properties or {}).items():
        path = f"{prefix}{name}"
        leaf = {k: v for k, v in definition.items() if k != "properties"}
        children = definition.get("properties")
        if children is not None:
            leaf.setdefault("type", "object")
        flat[path] = leaf
        if children:
            flat.update(flatten_properties(children, f"{path}."))
    return flat


def unflatten_properties(paths: list[str], declared: FlatMapping) -> dict[str, Any]:
    """把字段路径还原为 put_mapping 需要的嵌套 properties.

    路径上的父字段使用定义中的字段定义，保证 nested 等类型不会被改写为 object。
    """
    properties: dict[str, Any] = {}
    for path in sorted(paths):
        parts = path.split(".")
        node = properties
        for depth, part in enumerate(parts):
            current = ".".join(parts[: depth + 1])
            entry = node.setdefault(part, dict(declared.get(current, {})))
            if depth < len(parts) - 1:
                node = entry.setdefault("properties", {})
    return properties


def field_type(definition: dict[str, Any]) -> str:
    return str(definition.get("type", "object"))


def diff_mappings(
    index_name: str, live: dict[str, Any], declared: dict[str, Any]
) -> tuple[list[str], list[MappingConflict]]:
    """比较现有映射与定义中的映射.

    Args:
        index_name: 物理索引名称
        live: 索引当前映射（``{"properties": {...}}``）
        declared: 定义中的映射

    Returns:
        (新增字段路径, 类型冲突)
    """
    live_flat = flatten_properties(live.get("properties", {}))
    declared_flat = flatten_properties(declared.get("properties", {}))

    added: list[str] = []
    conflicts: list[MappingConflict] = []
    for path, definition in declared_flat.items():
        existing = live_flat.get(path)
        if existing is None:
            added.append(path)
            continue
        if field_type(existing) != field_type(definition):
            conflicts.append(
                MappingConflict(
                    index_name=index_name,
                    field=path,
                    live_type=field_type(existing),
                    declared_type=field_type(definition),
                )
            )
    return added, conflicts


def _setting_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_setting_value(v) for v in value)
    return str(value)


def flatten_settings(settings: dict[str, Any], prefix: str = "") -> FlatSettings:
    """把设置展开为去掉 ``index.`` 前缀的扁平键，值统一为字符串.

    Examples:
        >>> flatten_settings({"index": {"number_of_replicas": 1, "refresh_interval": "5s"}})
        {'number_of_replicas': '1', 'refresh_interval': '5s'}
    """
    flat: FlatSettings = {}
    for key, value in (settings or {}).items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(flatten_settings(value, f"{path}."))
        else:
            if path.startswith("index."):
                path = path[len("index.") :]
            flat[path] = _setting_value(value)
    return flat


def is_static_setting(key: str) -> bool:
    return any(key == s or key.startswith(f"{s}.") for s in STATIC_SETTINGS)


def diff_settings(
    live: FlatSettings, declared: dict[str, Any]
) -> tuple[FlatSettings, list[str]]:
    """比较现有设置与定义中的设置.

    Returns:
        (需要更新的动态设置, 值不同但无法原地修改的静态设置键)
    """
    live_flat = {k: _setting_value(v) for k, v in (live or {}).items()}
    dynamic: FlatSettings = {}
    static: list[str] = []
    for key, value in flatten_settings(declared).items():
        if live_flat.get(key) == value:
            continue
        if is_static_setting(key):
            static.append(key)
        else:
            dynamic[key] = value
    return dynamic, static


class IndexConfigurator:
    """索引配置器.

    非时间序列索引直接创建或增量更新 ``{name}-v{version}``；时间序列索引写入
    匹配 ``{name}-v{version}-*`` 的索引模板，让直接写入时自动创建的分桶也带上
    声明的映射与设置，然后增量更新该版本已有的所有分桶。

    重复调用是幂等的：没有变化时不产生任何远程写入。

    Args:
        store: 远程索引存储
        resolver: 版本解析器，用于判断配置的版本是否为权威版本

    Example:
        >>> configurator = IndexConfigurator(store, resolver)
        >>> result = configurator.configure(definition)
        >>> if result.has_conflicts():
        ...     print(result.conflicts)
    """

    def __init__(self, store: IndexStore, resolver: VersionResolver):
        self.store = store
        self.resolver = resolver

    def configure(
        self, definition: IndexDefinition, version: int | None = None
    ) -> ConfigureResult:
        """配置索引.

        Args:
            definition: 索引定义
            version: 要配置的版本，默认使用定义中的版本

        Returns:
            ConfigureResult
        """
        if version is not None and version != definition.version:
            definition = replace(definition, version=version)

        result = ConfigureResult(name=definition.name, version=definition.version)
        if definition.is_time_series:
            self._configure_template(definition, result)
            for bucket in self._existing_buckets(definition):
                self._update_index(definition, bucket.index_name, result)
        else:
            self._configure_single(definition, result)

        if result.has_conflicts():
            logger.error(
                f"索引 '{definition.name}' v{definition.version} 存在 "
                f"{len(result.conflicts)} 个字段类型冲突，需要创建新的索引版本"
            )
        logger.info(
            f"索引 '{definition.name}' v{definition.version} 配置完成，"
            f"新建: {result.created}，更新字段: {result.added_fields}"
        )
        return result

    def create_bucket(
        self,
        definition: IndexDefinition,
        bucket: Bucket,
        aliases: set[str] | frozenset[str],
    ) -> bool:
        """创建物理分桶，并在同一请求中挂载初始别名.

        并发创建导致的索引已存在视为成功。分桶版本与定义版本不同时不携带
        设置和映射，由该版本的索引模板决定 schema。

        Returns:
            本次调用是否创建了索引
        """
        settings = mappings = None
        if bucket.version == definition.version:
            settings = definition.settings or None
            mappings = definition.mappings or None
        else:
            logger.info(
                f"分桶 '{bucket.index_name}' 属于 v{bucket.version}，"
                f"不使用 v{definition.version} 的映射，由索引模板提供 schema"
            )
        try:
            return self.store.create_index(
                bucket.index_name,
                settings=settings,
                mappings=mappings,
                aliases=aliases,
            )
        except IndexAlreadyExistsError:
            logger.info(f"索引 '{bucket.index_name}' 已被其他调用方创建")
            return False

    def _configure_single(
        self, definition: IndexDefinition, result: ConfigureResult
    ) -> None:
        bucket = get_bucket(definition, None)
        authoritative = (
            self.resolver.get_current_version(definition, use_cache=False)
            == definition.version
        )

        index_aliases = self.store.get_aliases(bucket.index_name)
        if bucket.index_name not in index_aliases:
            aliases = {definition.name} if authoritative else set()
            if self.create_bucket(definition, bucket, aliases):
                result.created.append(bucket.index_name)
                result.aliases_added.extend(
                    (bucket.index_name, alias) for alias in sorted(aliases)
                )
                return
            index_aliases = self.store.get_aliases(bucket.index_name)

        self._update_index(definition, bucket.index_name, result)

        if authoritative and definition.name not in index_aliases.get(
            bucket.index_name, set()
        ):
            self.store.add_alias(bucket.index_name, definition.name)
            result.aliases_added.append((bucket.index_name, definition.name))

    def _configure_template(
        self, definition: IndexDefinition, result: ConfigureResult
    ) -> None:
        name = definition.template_name
        patterns = [f"{name}-*"]
        stored = self.store.get_index_template(name)
        if stored is not None and self._template_matches(stored, patterns, definition):
            logger.debug(f"索引模板 '{name}' 未变化，跳过写入")
            return

        self.store.put_index_template(
            name,
            index_patterns=patterns,
            settings=definition.settings or None,
            mappings=definition.mappings or None,
        )
        result.template_updated = True

    @staticmethod
    def _template_matches(
        stored: dict[str, Any], patterns: list[str], definition: IndexDefinition
    ) -> bool:
        template = stored.get("template", {})
        return (
            list(stored.get("index_patterns", [])) == patterns
            and flatten_settings(template.get("settings", {}))
            == flatten_settings(definition.settings)
            and flatten_properties(template.get("mappings", {}).get("properties", {}))
            == flatten_properties(definition.mappings.get("properties", {}))
        )

    def _existing_buckets(self, definition: IndexDefinition) -> list[Bucket]:
        buckets = []
        for index_name in sorted(self.store.get_aliases(index_pattern(definition))):
            bucket = parse_index_name(definition, index_name)
            if bucket is not None and bucket.version == definition.version:
                buckets.append(bucket)
        return buckets

    def _update_index(
        self, definition: IndexDefinition, index_name: str, result: ConfigureResult
    ) -> None:
        """把定义中的映射与设置增量同步到已有索引."""
        result.updated.append(index_name)

        added, conflicts = diff_mappings(
            index_name, self.store.get_mapping(index_name), definition.mappings
        )
        for conflict in conflicts:
            logger.error(
                f"索引 '{index_name}' 字段 '{conflict.field}' 类型由 "
                f"{conflict.live_type} 变更为 {conflict.declared_type}，"
                f"无法原地修改，需要创建新的索引版本"
            )
        result.conflicts.extend(conflicts)

        if added:
            declared = flatten_properties(definition.mappings.get("properties", {}))
            self.store.put_mapping(index_name, unflatten_properties(added, declared))
            result.added_fields[index_name] = added

        if not definition.settings:
            return
        dynamic, static = diff_settings(
            self.store.get_settings(index_name), definition.settings
        )
        for key in static:
            logger.warning(f"索引 '{index_name}' 的静态设置 '{key}' 无法原地修改，已跳过")
            result.skipped_settings.append(f"{index_name}:{key}")
        if dynamic:
            self.store.put_settings(index_name, dynamic)
            result.updated_settings[index_name] = sorted(dynamic)
