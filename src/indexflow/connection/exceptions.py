"""ES 连接配置异常定义模块."""

from ..exceptions import IndexFlowError


class ConnectionConfigError(IndexFlowError):
    """连接配置校验异常.

    当连接配置参数不合法时抛出，例如 hosts 为空、request_timeout 小于 0、
    环境变量无法解析等。
    """

    pass
