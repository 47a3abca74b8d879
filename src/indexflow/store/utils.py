"""索引存储工具函数模块."""

from elasticsearch import ApiError, ConnectionError, ConnectionTimeout

# 可重试的 HTTP 状态码：限流与网关类错误
TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})


def validate_index_name(index_name: str, allow_wildcards: bool = False) -> bool:
    """验证索引名称是否符合 Elasticsearch 规范.

    Args:
        index_name: 索引名称
        allow_wildcards: 是否允许通配符（用于查询场景）

    Returns:
        是否有效

    Note:
        Elasticsearch 索引名称限制：
        - 必须全部小写
        - 不能以 . 、_ 、- 或 + 开头
        - 不能包含 , # / \\ * ? " < > | 空格
        - 不能是 . 或 ..
        - 长度不能超过 255 字节
    """
    if not index_name or not isinstance(index_name, str):
        return False

    if len(index_name.encode("utf-8")) > 255:
        return False

    if index_name != index_name.lower():
        return False

    if index_name[0] in "._-+":
        return False

    if index_name in (".", ".."):
        return False

    invalid_chars = {",", "#", "/", "\\", '"', "<", ">", "|", " ", "\t", "\n", "\r"}
    if not allow_wildcards:
        invalid_chars.update({"*", "?"})

    return not any(char in invalid_chars for char in index_name)


def is_transient_error(error: BaseException) -> bool:
    """判断异常是否为可重试的暂时性远程错误.

    连接失败、超时以及 429/502/503/504 响应视为暂时性错误。

    Args:
        error: 捕获到的异常

    Returns:
        是否可重试

    Examples:
        >>> is_transient_error(ValueError("bad"))
        False
    """
    if isinstance(error, (ConnectionError, ConnectionTimeout)):
        return True
    if isinstance(error, ApiError):
        return error.status_code in TRANSIENT_STATUS_CODES
    return False
