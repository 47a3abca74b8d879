"""ES 客户端连接模块 - 统一管理 Elasticsearch 客户端的配置与生命周期.

主要组件:
    - ESClientFactory: 客户端工厂
    - ClusterConfig: 集群配置模型
    - ConnectionConfig: 连接池配置模型
    - load_cluster_config: 从环境变量加载集群配置

使用示例:
    from indexflow.connection import ESClientFactory, ClusterConfig

    factory = ESClientFactory(ClusterConfig(hosts=["http://localhost:9200"]))
    client = factory.get_client()
"""

from .exceptions import ConnectionConfigError
from .models import ClusterConfig, ConnectionConfig, load_cluster_config
from .tool import ESClientFactory

__all__ = [
    # 工厂
    "ESClientFactory",
    # 模型
    "ClusterConfig",
    "ConnectionConfig",
    "load_cluster_config",
    # 异常
    "ConnectionConfigError",
]
