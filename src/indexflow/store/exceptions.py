"""远程索引存储异常定义模块."""

from ..exceptions import IndexFlowError


class IndexStoreError(IndexFlowError):
    """索引存储基础异常类（不可重试的远程错误）."""

    pass


class IndexNotFoundError(IndexStoreError):
    """索引不存在异常."""

    pass


class IndexAlreadyExistsError(IndexStoreError):
    """索引已存在异常."""

    pass
