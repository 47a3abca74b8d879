"""测试公共 fixtures.

提供内存版 IndexStore，用于在没有 Elasticsearch 集群的情况下测试生命周期引擎。
"""

import copy
import fnmatch
from datetime import UTC, datetime
from typing import Any

import pytest

from indexflow.cache import InMemoryVersionCache
from indexflow.lifecycle import MaintenanceCoordinator
from indexflow.lifecycle.configurator import flatten_settings
from indexflow.store import IndexAlreadyExistsError, IndexNotFoundError, IndexStore


def _merge_properties(target: dict[str, Any], properties: dict[str, Any]) -> None:
    for name, definition in properties.items():
        existing = target.get(name)
        if existing is None:
            target[name] = copy.deepcopy(definition)
            continue
        children = definition.get("properties")
        if children:
            _merge_properties(existing.setdefault("properties", {}), children)


class FakeIndexStore(IndexStore):
    """内存版索引存储.

    记录所有变更调用，并支持按 (方法, 索引) 注入异常。
    """

    DEFAULT_SETTINGS = {"number_of_shards": "1", "number_of_replicas": "1"}

    def __init__(self):
        self.indices: dict[str, dict[str, Any]] = {}
        self.templates: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.failures: dict[tuple[str, str], Exception] = {}

    # --- 测试辅助 ---

    def fail_on(self, method: str, index: str, error: Exception) -> None:
        self.failures[(method, index)] = error

    def _check(self, method: str, index: str) -> None:
        error = self.failures.get((method, index))
        if error is not None:
            raise error

    def seed(self, name: str, aliases=(), mappings=None, settings=None) -> None:
        """不经过调用记录直接放入一个索引."""
        self.indices[name] = {
            "mappings": copy.deepcopy(mappings or {}),
            "settings": {**self.DEFAULT_SETTINGS, **flatten_settings(settings or {})},
            "aliases": set(aliases),
        }

    def aliases_of(self, name: str) -> set[str]:
        return set(self.indices[name]["aliases"])

    def writes(self, method: str | None = None) -> list[tuple]:
        if method is None:
            return list(self.calls)
        return [c for c in self.calls if c[0] == method]

    # --- IndexStore ---

    def index_exists(self, name: str) -> bool:
        return name in self.indices

    def create_index(self, name, settings=None, mappings=None, aliases=None) -> bool:
        self._check("create_index", name)
        if name in self.indices:
            raise IndexAlreadyExistsError(f"索引 '{name}' 已存在")
        self.calls.append(("create_index", name, frozenset(aliases or ())))
        template = self._matching_template(name)
        self.seed(
            name,
            aliases or (),
            mappings or template.get("mappings"),
            {**template.get("settings", {}), **(settings or {})},
        )
        return True

    def _matching_template(self, name: str) -> dict[str, Any]:
        """与 Elasticsearch 一致：新建索引时套用名称匹配的索引模板."""
        for template in self.templates.values():
            if any(fnmatch.fnmatchcase(name, p) for p in template["index_patterns"]):
                return template["template"]
        return {}

    def delete_index(self, name: str) -> bool:
        self._check("delete_index", name)
        if name not in self.indices:
            return False
        self.calls.append(("delete_index", name))
        del self.indices[name]
        return True

    def get_mapping(self, name: str) -> dict[str, Any]:
        if name not in self.indices:
            raise IndexNotFoundError(f"索引 '{name}' 不存在")
        return copy.deepcopy(self.indices[name]["mappings"])

    def put_mapping(self, name: str, properties: dict[str, Any]) -> bool:
        self._check("put_mapping", name)
        if name not in self.indices:
            raise IndexNotFoundError(f"索引 '{name}' 不存在")
        self.calls.append(("put_mapping", name, copy.deepcopy(properties)))
        mappings = self.indices[name]["mappings"]
        _merge_properties(mappings.setdefault("properties", {}), properties)
        return True

    def get_settings(self, name: str) -> dict[str, str]:
        if name not in self.indices:
            raise IndexNotFoundError(f"索引 '{name}' 不存在")
        return dict(self.indices[name]["settings"])

    def put_settings(self, name: str, settings: dict[str, Any]) -> bool:
        self._check("put_settings", name)
        if name not in self.indices:
            raise IndexNotFoundError(f"索引 '{name}' 不存在")
        self.calls.append(("put_settings", name, dict(settings)))
        self.indices[name]["settings"].update(flatten_settings(settings))
        return True

    def get_aliases(self, index_or_pattern: str) -> dict[str, set[str]]:
        return {
            name: set(data["aliases"])
            for name, data in self.indices.items()
            if fnmatch.fnmatchcase(name, index_or_pattern)
        }

    def add_alias(self, index: str, alias: str) -> bool:
        self._check("add_alias", index)
        if index not in self.indices:
            raise IndexNotFoundError(f"索引 '{index}' 不存在")
        self.calls.append(("add_alias", index, alias))
        self.indices[index]["aliases"].add(alias)
        return True

    def remove_alias(self, index: str, alias: str) -> bool:
        self._check("remove_alias", index)
        if index not in self.indices or alias not in self.indices[index]["aliases"]:
            return False
        self.calls.append(("remove_alias", index, alias))
        self.indices[index]["aliases"].discard(alias)
        return True

    def get_index_template(self, name: str) -> dict[str, Any] | None:
        template = self.templates.get(name)
        return copy.deepcopy(template) if template is not None else None

    def put_index_template(self, name, index_patterns, settings=None, mappings=None):
        self.calls.append(("put_index_template", name))
        template: dict[str, Any] = {}
        if settings:
            template["settings"] = copy.deepcopy(settings)
        if mappings:
            template["mappings"] = copy.deepcopy(mappings)
        self.templates[name] = {
            "index_patterns": list(index_patterns),
            "template": template,
        }
        return True

    def delete_index_template(self, name: str) -> bool:
        if name not in self.templates:
            return False
        self.calls.append(("delete_index_template", name))
        del self.templates[name]
        return True


@pytest.fixture
def store() -> FakeIndexStore:
    """内存版索引存储."""
    return FakeIndexStore()


@pytest.fixture
def now() -> datetime:
    """固定的当前时间（闰日正午）."""
    return datetime(2016, 2, 29, 12, 0, tzinfo=UTC)


@pytest.fixture
def coordinator(store, now) -> MaintenanceCoordinator:
    """使用内存存储和固定时钟的协调器."""
    return MaintenanceCoordinator(
        store, cache=InMemoryVersionCache(), now_func=lambda: now
    )


@pytest.fixture
def provisioned(coordinator):
    """登记测试中创建的逻辑索引，结束时无论成功失败都清理."""
    definitions = []
    yield definitions
    for definition in definitions:
        coordinator.delete(definition)
