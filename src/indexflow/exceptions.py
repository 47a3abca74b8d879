"""indexflow 异常定义模块."""


class IndexFlowError(Exception):
    """indexflow 基础异常类."""

    pass


class RemoteTransientError(IndexFlowError):
    """远程存储暂时性异常.

    超时、连接失败、限流（429）以及 502/503/504 等可重试的错误。
    调用方可在稍后重试同一操作。
    """

    pass


class IndexVanishedError(RemoteTransientError):
    """索引在操作过程中被并发删除.

    通常是维护任务按保留策略删除了分桶，而写入路径同时在确保该分桶存在。
    属于可重试条件，不代表数据丢失。
    """

    pass
