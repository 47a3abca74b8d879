"""基于 Elasticsearch 客户端的索引存储实现."""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from elasticsearch import BadRequestError, Elasticsearch, NotFoundError

from ..exceptions import RemoteTransientError
from ..typing import IndexAliasMap
from .base import IndexStore
from .exceptions import IndexAlreadyExistsError, IndexNotFoundError, IndexStoreError
from .utils import is_transient_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ElasticsearchIndexStore(IndexStore):
    """Elasticsearch 索引存储.

    对索引、映射、设置、别名和索引模板的远程操作做了统一封装：

    - 暂时性错误（连接失败、超时、429/5xx）按指数退避重试
    - 创建/删除索引只有在确认上一次尝试没有生效后才会重试
    - 别名的添加与移除、索引删除都是幂等的

    Args:
        es_client: Elasticsearch 客户端实例
        max_retries: 暂时性错误的最大重试次数，默认 3
        retry_delay: 首次重试前的等待时间（秒），之后每次翻倍，默认 0.5
        request_timeout: 单次请求超时时间（秒），None 表示使用客户端默认值

    Example:
        >>> store = ElasticsearchIndexStore(es_client, request_timeout=10)
        >>> store.create_index("employees-v1", aliases={"employees"})
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        request_timeout: float | None = None,
    ):
        if es_client is None:
            raise ValueError("es_client 不能为 None")
        if max_retries < 0:
            raise ValueError(f"max_retries 必须 >= 0，当前值: {max_retries}")
        self.es_client = es_client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout

    @property
    def _client(self) -> Elasticsearch:
        if self.request_timeout is None:
            return self.es_client
        return self.es_client.options(request_timeout=self.request_timeout)

    # ------------------------------------------------------------------
    # 重试
    # ------------------------------------------------------------------

    def _call(self, description: str, func: Callable[[], T]) -> T:
        """执行幂等的远程调用，暂时性错误按指数退避重试.

        Args:
            description: 操作描述，用于日志与异常信息
            func: 实际的远程调用

        Returns:
            远程调用的返回值

        Raises:
            RemoteTransientError: 重试次数耗尽时抛出
        """
        return self._call_verified(description, func, landed=None)

    def _call_verified(
        self,
        description: str,
        func: Callable[[], T],
        landed: Callable[[], bool] | None,
        landed_result: T | None = None,
    ) -> T:
        """执行远程调用；非幂等操作失败后先确认是否已生效再决定是否重试.

        Args:
            description: 操作描述
            func: 实际的远程调用
            landed: 检查上一次尝试是否已经生效的函数，None 表示操作本身幂等
            landed_result: 确认已生效时返回的结果
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func()
            except Exception as e:
                if not is_transient_error(e):
                    raise

                if landed is not None:
                    try:
                        if landed():
                            logger.warning(
                                f"{description} 返回暂时性错误，但操作已生效: {e}"
                            )
                            return landed_result  # type: ignore[return-value]
                    except Exception as check_error:
                        if not is_transient_error(check_error):
                            raise
                        # 无法确认是否已生效，按未生效处理

                if attempt >= self.max_retries:
                    raise RemoteTransientError(
                        f"{description} 重试 {self.max_retries} 次后仍失败: {e}"
                    ) from e

                delay = self.retry_delay * (2**attempt)
                logger.warning(
                    f"{description} 遇到暂时性错误，{delay:.2f} 秒后第 {attempt + 1} 次重试: {e}"
                )
                time.sleep(delay)

        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # 索引
    # ------------------------------------------------------------------

    def index_exists(self, name: str) -> bool:
        return bool(
            self._call(
                f"检查索引 '{name}' 是否存在",
                lambda: self._client.indices.exists(index=name),
            )
        )

    def create_index(
        self,
        name: str,
        settings: dict[str, Any] | None = None,
        mappings: dict[str, Any] | None = None,
        aliases: set[str] | frozenset[str] | None = None,
    ) -> bool:
        """创建索引.

        Args:
            name: 索引名称
            settings: 索引设置
            mappings: 索引映射
            aliases: 创建时一并挂载的别名

        Returns:
            是否成功创建索引

        Raises:
            IndexAlreadyExistsError: 索引已存在时抛出
            IndexStoreError: 其他不可重试的错误
            RemoteTransientError: 暂时性错误重试耗尽时抛出
        """
        body: dict[str, Any] = {}
        if settings:
            body["settings"] = settings
        if mappings:
            body["mappings"] = mappings
        if aliases:
            body["aliases"] = {alias: {} for alias in sorted(aliases)}

        def _create() -> bool:
            response = self._client.indices.create(index=name, body=body)
            return bool(response.get("acknowledged", False))

        try:
            acknowledged = self._call_verified(
                f"创建索引 '{name}'",
                _create,
                landed=lambda: bool(self._client.indices.exists(index=name)),
                landed_result=True,
            )
        except BadRequestError as e:
            if "resource_already_exists_exception" in str(e):
                raise IndexAlreadyExistsError(f"索引 '{name}' 已存在") from e
            raise IndexStoreError(f"创建索引 '{name}' 失败: {e}") from e
        except (RemoteTransientError, IndexStoreError):
            raise
        except Exception as e:
            raise IndexStoreError(f"创建索引 '{name}' 失败: {e}") from e

        if acknowledged:
            logger.info(f"索引 '{name}' 创建成功，别名: {sorted(aliases or [])}")
        return acknowledged

    def delete_index(self, name: str) -> bool:
        """删除索引.

        删除索引会同时移除其所有别名。索引不存在时记录警告并返回 False。
        """
        if "*" in name or "?" in name:
            raise ValueError(f"拒绝删除包含通配符的索引名称: '{name}'")

        def _delete() -> bool:
            response = self._client.indices.delete(index=name)
            return bool(response.get("acknowledged", False))

        try:
            acknowledged = self._call_verified(
                f"删除索引 '{name}'",
                _delete,
                landed=lambda: not self._client.indices.exists(index=name),
                landed_result=True,
            )
        except NotFoundError:
            logger.warning(f"索引 '{name}' 不存在，无需删除")
            return False
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"删除索引 '{name}' 失败: {e}") from e

        if acknowledged:
            logger.info(f"索引 '{name}' 删除成功")
        return acknowledged

    # ------------------------------------------------------------------
    # 映射与设置
    # ------------------------------------------------------------------

    def get_mapping(self, name: str) -> dict[str, Any]:
        try:
            response = self._call(
                f"获取索引 '{name}' 映射",
                lambda: self._client.indices.get_mapping(index=name),
            )
        except NotFoundError as e:
            raise IndexNotFoundError(f"索引 '{name}' 不存在") from e
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"获取索引 '{name}' 映射失败: {e}") from e
        index_data = response.get(name) or next(iter(response.values()), {})
        return dict(index_data.get("mappings", {}))

    def put_mapping(self, name: str, properties: dict[str, Any]) -> bool:
        try:
            response = self._call(
                f"更新索引 '{name}' 映射",
                lambda: self._client.indices.put_mapping(
                    index=name, body={"properties": properties}
                ),
            )
        except NotFoundError as e:
            raise IndexNotFoundError(f"索引 '{name}' 不存在") from e
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"更新索引 '{name}' 映射失败: {e}") from e

        acknowledged = bool(response.get("acknowledged", False))
        if acknowledged:
            logger.info(f"索引 '{name}' 新增字段映射: {sorted(properties)}")
        return acknowledged

    def get_settings(self, name: str) -> dict[str, str]:
        try:
            response = self._call(
                f"获取索引 '{name}' 设置",
                lambda: self._client.indices.get_settings(
                    index=name, flat_settings=True
                ),
            )
        except NotFoundError as e:
            raise IndexNotFoundError(f"索引 '{name}' 不存在") from e
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"获取索引 '{name}' 设置失败: {e}") from e

        index_data = response.get(name) or next(iter(response.values()), {})
        settings: dict[str, str] = {}
        for key, value in index_data.get("settings", {}).items():
            if key.startswith("index."):
                key = key[len("index.") :]
            settings[key] = value
        return settings

    def put_settings(self, name: str, settings: dict[str, Any]) -> bool:
        try:
            response = self._call(
                f"更新索引 '{name}' 设置",
                lambda: self._client.indices.put_settings(
                    index=name, body={"index": settings}
                ),
            )
        except NotFoundError as e:
            raise IndexNotFoundError(f"索引 '{name}' 不存在") from e
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"更新索引 '{name}' 设置失败: {e}") from e

        acknowledged = bool(response.get("acknowledged", False))
        if acknowledged:
            logger.info(f"索引 '{name}' 设置更新成功: {sorted(settings)}")
        return acknowledged

    # ------------------------------------------------------------------
    # 别名
    # ------------------------------------------------------------------

    def get_aliases(self, index_or_pattern: str) -> IndexAliasMap:
        try:
            response = self._call(
                f"获取 '{index_or_pattern}' 的别名",
                lambda: self._client.indices.get_alias(index=index_or_pattern),
            )
        except NotFoundError:
            return {}

        return {
            index_name: set(index_data.get("aliases", {}).keys())
            for index_name, index_data in response.items()
        }

    def add_alias(self, index: str, alias: str) -> bool:
        try:
            response = self._call(
                f"为索引 '{index}' 添加别名 '{alias}'",
                lambda: self._client.indices.put_alias(index=index, name=alias),
            )
        except NotFoundError as e:
            raise IndexNotFoundError(f"索引 '{index}' 不存在，无法添加别名") from e
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"为索引 '{index}' 添加别名失败: {e}") from e

        acknowledged = bool(response.get("acknowledged", False))
        if acknowledged:
            logger.info(f"别名 '{alias}' 已指向索引 '{index}'")
        return acknowledged

    def remove_alias(self, index: str, alias: str) -> bool:
        try:
            response = self._call(
                f"从索引 '{index}' 移除别名 '{alias}'",
                lambda: self._client.indices.delete_alias(index=index, name=alias),
            )
        except NotFoundError:
            logger.warning(f"别名 '{alias}' 或索引 '{index}' 不存在")
            return False
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"从索引 '{index}' 移除别名失败: {e}") from e

        acknowledged = bool(response.get("acknowledged", False))
        if acknowledged:
            logger.info(f"别名 '{alias}' 已从索引 '{index}' 移除")
        return acknowledged

    # ------------------------------------------------------------------
    # 索引模板
    # ------------------------------------------------------------------

    def get_index_template(self, name: str) -> dict[str, Any] | None:
        try:
            response = self._call(
                f"获取索引模板 '{name}'",
                lambda: self._client.indices.get_index_template(name=name),
            )
        except NotFoundError:
            return None

        for template in response.get("index_templates", []):
            if template.get("name") == name:
                return dict(template.get("index_template", {}))
        return None

    def put_index_template(
        self,
        name: str,
        index_patterns: list[str],
        settings: dict[str, Any] | None = None,
        mappings: dict[str, Any] | None = None,
    ) -> bool:
        template: dict[str, Any] = {}
        if settings:
            template["settings"] = settings
        if mappings:
            template["mappings"] = mappings
        body: dict[str, Any] = {"index_patterns": index_patterns}
        if template:
            body["template"] = template

        try:
            response = self._call(
                f"写入索引模板 '{name}'",
                lambda: self._client.indices.put_index_template(name=name, body=body),
            )
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"写入索引模板 '{name}' 失败: {e}") from e

        acknowledged = bool(response.get("acknowledged", False))
        if acknowledged:
            logger.info(f"索引模板 '{name}' 写入成功，匹配: {index_patterns}")
        return acknowledged

    def delete_index_template(self, name: str) -> bool:
        try:
            response = self._call(
                f"删除索引模板 '{name}'",
                lambda: self._client.indices.delete_index_template(name=name),
            )
        except NotFoundError:
            logger.warning(f"索引模板 '{name}' 不存在")
            return False
        except RemoteTransientError:
            raise
        except Exception as e:
            raise IndexStoreError(f"删除索引模板 '{name}' 失败: {e}") from e

        acknowledged = bool(response.get("acknowledged", False))
        if acknowledged:
            logger.info(f"索引模板 '{name}' 删除成功")
        return acknowledged
