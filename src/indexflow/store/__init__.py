"""远程索引存储模块.

生命周期引擎与搜索引擎集群之间的边界：

- IndexStore: 抽象接口（索引、映射、设置、别名、索引模板）
- ElasticsearchIndexStore: 基于 elasticsearch 客户端的实现，带退避重试

示例用法:
    >>> from indexflow.store import ElasticsearchIndexStore
    >>> store = ElasticsearchIndexStore(es_client)
    >>> store.get_aliases("employees-v*")
    {'employees-v1': {'employees'}}
"""

from .base import IndexStore
from .exceptions import IndexAlreadyExistsError, IndexNotFoundError, IndexStoreError
from .tool import ElasticsearchIndexStore
from .utils import is_transient_error, validate_index_name

__all__ = [
    # 接口与实现
    "IndexStore",
    "ElasticsearchIndexStore",
    # 异常类
    "IndexStoreError",
    "IndexNotFoundError",
    "IndexAlreadyExistsError",
    # 工具函数
    "is_transient_error",
    "validate_index_name",
]
