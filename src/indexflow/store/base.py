"""远程索引存储抽象接口模块."""

from abc import ABC, abstractmethod
from typing import Any

from ..typing import IndexAliasMap


class IndexStore(ABC):
    """远程索引存储的抽象接口.

    生命周期引擎只通过该接口访问搜索引擎集群。所有变更操作对引擎而言都是
    幂等的：重复添加已存在的别名、移除不存在的别名、删除不存在的索引都不报错。
    """

    @abstractmethod
    def index_exists(self, name: str) -> bool:
        """检查索引是否存在."""

    @abstractmethod
    def create_index(
        self,
        name: str,
        settings: dict[str, Any] | None = None,
        mappings: dict[str, Any] | None = None,
        aliases: set[str] | frozenset[str] | None = None,
    ) -> bool:
        """创建索引，并在同一请求中挂载初始别名.

        Raises:
            IndexAlreadyExistsError: 索引已存在时抛出
        """

    @abstractmethod
    def delete_index(self, name: str) -> bool:
        """删除索引，索引不存在时返回 False."""

    @abstractmethod
    def get_mapping(self, name: str) -> dict[str, Any]:
        """获取索引映射（包含 properties 的 mappings 字典）.

        Raises:
            IndexNotFoundError: 索引不存在时抛出
        """

    @abstractmethod
    def put_mapping(self, name: str, properties: dict[str, Any]) -> bool:
        """向已有索引追加字段映射."""

    @abstractmethod
    def get_settings(self, name: str) -> dict[str, str]:
        """获取索引设置，键为去掉 ``index.`` 前缀的扁平路径.

        Raises:
            IndexNotFoundError: 索引不存在时抛出
        """

    @abstractmethod
    def put_settings(self, name: str, settings: dict[str, Any]) -> bool:
        """更新索引的动态设置."""

    @abstractmethod
    def get_aliases(self, index_or_pattern: str) -> IndexAliasMap:
        """获取索引（或匹配模式的所有索引）及其别名集合.

        没有别名的索引也会出现在结果中（别名集合为空）；没有匹配的索引时返回空字典。
        """

    @abstractmethod
    def add_alias(self, index: str, alias: str) -> bool:
        """为索引添加别名（已存在时为空操作）.

        Raises:
            IndexNotFoundError: 索引不存在时抛出
        """

    @abstractmethod
    def remove_alias(self, index: str, alias: str) -> bool:
        """从索引移除别名，别名或索引不存在时返回 False."""

    @abstractmethod
    def get_index_template(self, name: str) -> dict[str, Any] | None:
        """获取索引模板，不存在时返回 None."""

    @abstractmethod
    def put_index_template(
        self,
        name: str,
        index_patterns: list[str],
        settings: dict[str, Any] | None = None,
        mappings: dict[str, Any] | None = None,
    ) -> bool:
        """创建或覆盖索引模板."""

    @abstractmethod
    def delete_index_template(self, name: str) -> bool:
        """删除索引模板，不存在时返回 False."""
