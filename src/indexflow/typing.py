"""indexflow 类型定义模块."""

from typing import Any, Dict, Set

# 索引名 -> 别名集合
IndexAliasMap = Dict[str, Set[str]]

# 扁平化后的字段映射
# 格式: {"user.name": {"type": "keyword"}, ...}
FlatMapping = Dict[str, Dict[str, Any]]

# 扁平化后的索引设置
# 格式: {"number_of_replicas": "1", "refresh_interval": "1s", ...}
FlatSettings = Dict[str, str]
