"""ES 客户端工厂工具模块.

提供 ESClientFactory 类，用于根据配置创建 Elasticsearch 客户端，
缓存单一客户端实例并在退出时关闭连接。

使用示例:
    from indexflow.connection import ESClientFactory, load_cluster_config

    with ESClientFactory(load_cluster_config()) as factory:
        client = factory.get_client()
"""

from __future__ import annotations

import logging

from elasticsearch import Elasticsearch

from .models import ClusterConfig, ConnectionConfig

logger = logging.getLogger(__name__)


class ESClientFactory:
    """Elasticsearch 客户端工厂.

    惰性创建并缓存客户端，支持多种认证方式、健康检查和上下文管理器。

    Attributes:
        _cluster: 集群配置
        _connection_config: 连接池配置
        _client: 已缓存的客户端

    Examples:
        >>> factory = ESClientFactory(ClusterConfig(hosts=["http://localhost:9200"]))
        >>> client = factory.get_client()
    """

    def __init__(
        self,
        cluster: ClusterConfig,
        connection_config: ConnectionConfig | None = None,
    ) -> None:
        self._cluster = cluster
        self._connection_config = connection_config or ConnectionConfig()
        self._client: Elasticsearch | None = None

    @property
    def connection_config(self) -> ConnectionConfig:
        """当前连接池配置."""
        return self._connection_config

    def _create_client(self) -> Elasticsearch:
        """根据集群配置创建 Elasticsearch 客户端实例.

        Returns:
            Elasticsearch 客户端实例
        """
        cluster = self._cluster
        kwargs: dict = {
            "hosts": cluster.hosts,
            "connections_per_node": self._connection_config.max_connections,
            "max_retries": self._connection_config.max_retries,
            "retry_on_timeout": self._connection_config.retry_on_timeout,
            "request_timeout": self._connection_config.request_timeout,
            "http_compress": self._connection_config.http_compress,
        }

        # Basic Auth 认证
        if cluster.username and cluster.password:
            kwargs["basic_auth"] = (cluster.username, cluster.password)

        # API Key 认证
        if cluster.api_key:
            kwargs["api_key"] = cluster.api_key

        # Bearer Token 认证
        if cluster.bearer_token:
            kwargs["bearer_auth"] = cluster.bearer_token

        # SSL/TLS 配置
        if cluster.ca_certs:
            kwargs["ca_certs"] = cluster.ca_certs
        kwargs["verify_certs"] = cluster.verify_certs

        logger.info(f"创建 Elasticsearch 客户端: {cluster.hosts}")
        return Elasticsearch(**kwargs)

    def get_client(self) -> Elasticsearch:
        """获取客户端，首次调用时创建.

        Returns:
            Elasticsearch 客户端实例
        """
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def is_healthy(self) -> bool:
        """判断集群是否健康（green 或 yellow）.

        集群不可达时返回 False 而不抛出异常。
        """
        try:
            health = self.get_client().cluster.health()
        except Exception as e:
            logger.warning(f"集群健康检查失败: {e}")
            return False
        return health.get("status") in ("green", "yellow")

    # ============================================================
    # 生命周期管理
    # ============================================================

    def __enter__(self) -> ESClientFactory:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """上下文管理器退出，自动关闭客户端."""
        self.close()

    def close(self) -> None:
        """关闭客户端连接并清空缓存.

        关闭后可重新调用 get_client() 创建新的客户端。
        """
        if self._client is None:
            return
        try:
            self._client.close()
        except Exception as e:
            logger.warning(f"关闭 Elasticsearch 客户端时出错: {e}")
        self._client = None
