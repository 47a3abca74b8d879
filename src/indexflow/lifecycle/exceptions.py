"""索引生命周期异常定义模块."""

from ..exceptions import IndexFlowError


class LifecycleError(IndexFlowError):
    """索引生命周期基础异常类."""

    pass


class IndexValidationError(LifecycleError):
    """参数校验异常.

    索引定义不合法（如版本号非正数、别名窗口重复），或请求创建超出保留期的分桶时抛出。
    不应重试。
    """

    pass


class MappingConflictError(LifecycleError):
    """字段映射类型冲突异常.

    IndexConfigurator 本身只记录冲突并跳过，不抛出该异常；
    需要把冲突升级为失败的调用方可以基于 ConfigureResult.conflicts 自行抛出。
    """

    pass


class PartialReconciliationError(LifecycleError):
    """维护过程中部分分桶处理失败.

    Attributes:
        result: 包含每个分桶处理结果的 MaintenanceResult
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result
