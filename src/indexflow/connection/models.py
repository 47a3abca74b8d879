"""ES 连接配置数据模型定义模块.

提供客户端连接相关的数据模型，包括：
- ClusterConfig: 集群地址与认证配置
- ConnectionConfig: 连接池与超时重试配置
- load_cluster_config: 从环境变量加载集群配置
"""

import os
from dataclasses import dataclass, field

from .exceptions import ConnectionConfigError

# 环境变量前缀
ENV_PREFIX = "INDEXFLOW_ES_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ClusterConfig:
    """集群配置模型.

    定义 ES 集群的连接地址与认证方式。

    Attributes:
        hosts: ES 节点地址列表（必需，不可为空）
        username: Basic Auth 用户名
        password: Basic Auth 密码
        api_key: API Key 认证（字符串或元组）
        bearer_token: Bearer Token 认证
        ca_certs: CA 证书文件路径
        verify_certs: 是否验证 SSL 证书，默认 True

    Raises:
        ConnectionConfigError: 当 hosts 为空时抛出

    Examples:
        >>> config = ClusterConfig(
        ...     hosts=["http://localhost:9200"],
        ...     username="elastic",
        ...     password="changeme",
        ... )
    """

    hosts: list[str] = field(default_factory=list)
    username: str | None = None
    password: str | None = None
    api_key: str | tuple[str, str] | None = None
    bearer_token: str | None = None
    ca_certs: str | None = None
    verify_certs: bool = True

    def __post_init__(self) -> None:
        """校验集群配置参数合法性."""
        if not self.hosts:
            raise ConnectionConfigError("hosts 不能为空，请提供至少一个 ES 节点地址")


@dataclass
class ConnectionConfig:
    """连接池配置模型.

    定义 ES 客户端的连接池参数和传输层重试策略。索引生命周期操作自身的
    退避重试由 ElasticsearchIndexStore 控制，两者互不替代。

    Attributes:
        max_connections: 最大连接数，默认 10，必须 >= 1
        max_retries: 传输层最大重试次数，默认 3
        retry_on_timeout: 超时是否重试，默认 True
        request_timeout: 请求超时时间（秒），默认 30，必须 >= 0
        http_compress: 是否启用 HTTP 压缩，默认 True

    Raises:
        ConnectionConfigError: 当参数不合法时抛出
    """

    max_connections: int = 10
    max_retries: int = 3
    retry_on_timeout: bool = True
    request_timeout: int = 30
    http_compress: bool = True

    def __post_init__(self) -> None:
        """校验连接池配置参数合法性."""
        if self.max_connections < 1:
            raise ConnectionConfigError(
                f"max_connections 必须 >= 1，当前值: {self.max_connections}"
            )
        if self.max_retries < 0:
            raise ConnectionConfigError(
                f"max_retries 必须 >= 0，当前值: {self.max_retries}"
            )
        if self.request_timeout < 0:
            raise ConnectionConfigError(
                f"request_timeout 必须 >= 0，当前值: {self.request_timeout}"
            )


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConnectionConfigError(f"环境变量 {name} 不是合法的布尔值: {value!r}")


def load_cluster_config(**overrides) -> ClusterConfig:
    """从环境变量加载集群配置，关键字参数优先.

    解析顺序（后者覆盖前者）：
      1. 数据类默认值
      2. 环境变量
      3. 显式关键字参数

    支持的环境变量:
      - INDEXFLOW_ES_HOSTS（逗号分隔）
      - INDEXFLOW_ES_USERNAME / INDEXFLOW_ES_PASSWORD
      - INDEXFLOW_ES_API_KEY
      - INDEXFLOW_ES_BEARER_TOKEN
      - INDEXFLOW_ES_CA_CERTS
      - INDEXFLOW_ES_VERIFY_CERTS（"true"/"false"）

    Args:
        **overrides: 覆盖 ClusterConfig 字段的关键字参数

    Returns:
        ClusterConfig 实例

    Raises:
        ConnectionConfigError: 当最终配置不合法时抛出

    Examples:
        >>> config = load_cluster_config(hosts=["http://localhost:9200"])
    """
    values: dict = {}

    hosts = os.getenv(f"{ENV_PREFIX}HOSTS")
    if hosts:
        values["hosts"] = [h.strip() for h in hosts.split(",") if h.strip()]

    for env_name, attr in (
        ("USERNAME", "username"),
        ("PASSWORD", "password"),
        ("API_KEY", "api_key"),
        ("BEARER_TOKEN", "bearer_token"),
        ("CA_CERTS", "ca_certs"),
    ):
        value = os.getenv(f"{ENV_PREFIX}{env_name}")
        if value:
            values[attr] = value

    verify = os.getenv(f"{ENV_PREFIX}VERIFY_CERTS")
    if verify:
        values["verify_certs"] = _parse_bool(f"{ENV_PREFIX}VERIFY_CERTS", verify)

    values.update(overrides)
    return ClusterConfig(**values)
