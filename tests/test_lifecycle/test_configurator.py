"""索引配置器单元测试."""

from datetime import UTC, datetime

import pytest

from indexflow.lifecycle.configurator import (
    IndexConfigurator,
    diff_mappings,
    diff_settings,
    flatten_properties,
    flatten_settings,
    unflatten_properties,
)
from indexflow.lifecycle.models import Bucket, IndexDefinition, TimeGranularity
from indexflow.lifecycle.versioning import VersionResolver

MAPPINGS_V1 = {
    "properties": {
        "email": {"type": "keyword"},
        "age": {"type": "integer"},
    }
}


@pytest.fixture
def configurator(store) -> IndexConfigurator:
    return IndexConfigurator(store, VersionResolver(store))


class TestFlatten:
    """映射与设置展开测试."""

    def test_flatten_nested_properties(self):
        """测试嵌套字段展开为点分路径."""
        flat = flatten_properties(
            {
                "user": {
                    "type": "nested",
                    "properties": {"email": {"type": "keyword"}},
                },
                "tags": {"type": "text", "fields": {"raw": {"type": "keyword"}}},
            }
        )
        assert flat == {
            "user": {"type": "nested"},
            "user.email": {"type": "keyword"},
            "tags": {"type": "text", "fields": {"raw": {"type": "keyword"}}},
        }

    def test_unflatten_keeps_parent_definition(self):
        """测试还原时保留父字段的类型."""
        declared = flatten_properties(
            {"user": {"type": "nested", "properties": {"email": {"type": "keyword"}}}}
        )
        assert unflatten_properties(["user.email"], declared) == {
            "user": {"type": "nested", "properties": {"email": {"type": "keyword"}}}
        }

    def test_flatten_settings(self):
        """测试设置展开并去掉 index. 前缀."""
        assert flatten_settings(
            {"index": {"number_of_replicas": 0, "blocks": {"read_only": False}}}
        ) == {"number_of_replicas": "0", "blocks.read_only": "false"}


class TestDiff:
    """映射与设置比较测试."""

    def test_new_field(self):
        """测试新增字段."""
        declared = {"properties": {**MAPPINGS_V1["properties"], "name": {"type": "text"}}}
        added, conflicts = diff_mappings("users-v1", MAPPINGS_V1, declared)
        assert added == ["name"]
        assert conflicts == []

    def test_type_conflict(self):
        """测试字段类型变更被识别为冲突."""
        declared = {"properties": {"email": {"type": "long"}, "age": {"type": "integer"}}}
        added, conflicts = diff_mappings("users-v1", MAPPINGS_V1, declared)
        assert added == []
        assert len(conflicts) == 1
        assert conflicts[0].field == "email"
        assert conflicts[0].live_type == "keyword"
        assert conflicts[0].declared_type == "long"

    def test_settings_dynamic_and_static(self):
        """测试动态设置更新，静态设置跳过."""
        live = {"number_of_shards": "1", "number_of_replicas": "1"}
        dynamic, static = diff_settings(
            live, {"number_of_shards": 3, "number_of_replicas": 2, "refresh_interval": "5s"}
        )
        assert dynamic == {"number_of_replicas": "2", "refresh_interval": "5s"}
        assert static == ["number_of_shards"]

    def test_settings_unchanged(self):
        """测试值相同的设置不产生更新."""
        dynamic, static = diff_settings({"number_of_replicas": "1"}, {"number_of_replicas": 1})
        assert dynamic == {}
        assert static == []


class TestConfigureSingleIndex:
    """非时间序列索引配置测试."""

    def test_creates_index_with_alias(self, store, configurator):
        """测试首次配置创建索引并挂载逻辑名称."""
        definition = IndexDefinition("users", mappings=MAPPINGS_V1)

        result = configurator.configure(definition)

        assert result.created == ["users-v1"]
        assert result.aliases_added == [("users-v1", "users")]
        assert store.aliases_of("users-v1") == {"users"}
        assert store.get_mapping("users-v1") == MAPPINGS_V1

    def test_second_call_performs_no_writes(self, store, configurator):
        """测试重复配置没有远程写入."""
        definition = IndexDefinition(
            "users", mappings=MAPPINGS_V1, settings={"number_of_replicas": 0}
        )
        configurator.configure(definition)
        store.calls.clear()

        result = configurator.configure(definition)

        assert store.writes() == []
        assert not result.has_changes()
        assert result.updated == ["users-v1"]

    def test_adds_new_fields_in_one_call(self, store, configurator):
        """测试新增字段通过一次 put_mapping 追加."""
        configurator.configure(IndexDefinition("users", mappings=MAPPINGS_V1))
        store.calls.clear()
        mappings = {
            "properties": {
                **MAPPINGS_V1["properties"],
                "name": {"type": "text"},
                "address": {"properties": {"city": {"type": "keyword"}}},
            }
        }

        result = configurator.configure(IndexDefinition("users", mappings=mappings))

        assert len(store.writes("put_mapping")) == 1
        assert result.added_fields == {"users-v1": ["name", "address", "address.city"]}
        assert store.get_mapping("users-v1")["properties"]["address"]["properties"] == {
            "city": {"type": "keyword"}
        }

    def test_type_conflict_is_logged_not_raised(self, store, configurator, caplog):
        """测试 keyword 改为数值类型时记录错误但不抛出."""
        configurator.configure(IndexDefinition("users", mappings=MAPPINGS_V1))
        changed = {"properties": {"email": {"type": "long"}, "age": {"type": "integer"}}}

        with caplog.at_level("ERROR"):
            result = configurator.configure(IndexDefinition("users", mappings=changed))

        assert result.has_conflicts()
        assert "需要创建新的索引版本" in caplog.text
        assert store.get_mapping("users-v1")["properties"]["email"] == {"type": "keyword"}
        assert store.writes("put_mapping") == []

    def test_static_setting_is_skipped(self, store, configurator, caplog):
        """测试静态设置变更只记录警告."""
        configurator.configure(IndexDefinition("users", settings={"number_of_shards": 1}))

        with caplog.at_level("WARNING"):
            result = configurator.configure(
                IndexDefinition(
                    "users", settings={"number_of_shards": 5, "number_of_replicas": 2}
                )
            )

        assert result.skipped_settings == ["users-v1:number_of_shards"]
        assert result.updated_settings == {"users-v1": ["number_of_replicas"]}
        assert store.get_settings("users-v1")["number_of_shards"] == "1"
        assert "number_of_shards" in caplog.text

    def test_non_authoritative_version_has_no_alias(self, store, configurator):
        """测试非权威版本创建时不挂载逻辑名称."""
        store.seed("users-v1", aliases={"users"})

        result = configurator.configure(IndexDefinition("users", version=2))

        assert result.created == ["users-v2"]
        assert store.aliases_of("users-v2") == set()
        assert store.aliases_of("users-v1") == {"users"}

    def test_restores_missing_alias(self, store, configurator):
        """测试权威版本缺少逻辑名称时补上."""
        store.seed("users-v1", mappings=MAPPINGS_V1)

        result = configurator.configure(IndexDefinition("users", mappings=MAPPINGS_V1))

        assert result.aliases_added == [("users-v1", "users")]
        assert store.aliases_of("users-v1") == {"users"}

    def test_explicit_version(self, store, configurator):
        """测试显式指定配置版本."""
        result = configurator.configure(IndexDefinition("users"), version=4)
        assert result.version == 4
        assert "users-v4" in store.indices


class TestConfigureTimeSeries:
    """时间序列索引配置测试."""

    @pytest.fixture
    def definition(self) -> IndexDefinition:
        return IndexDefinition(
            "logs",
            version=2,
            granularity=TimeGranularity.DAILY,
            mappings=MAPPINGS_V1,
            settings={"number_of_replicas": 0},
        )

    def test_puts_template(self, store, configurator, definition):
        """测试写入匹配该版本所有分桶的索引模板."""
        result = configurator.configure(definition)

        assert result.template_updated
        assert result.created == []
        assert store.templates["logs-v2"]["index_patterns"] == ["logs-v2-*"]
        assert store.templates["logs-v2"]["template"]["mappings"] == MAPPINGS_V1

    def test_unchanged_template_is_not_rewritten(self, store, configurator, definition):
        """测试模板未变化时不重复写入."""
        configurator.configure(definition)
        store.calls.clear()

        result = configurator.configure(definition)

        assert not result.template_updated
        assert store.writes() == []

    def test_updates_existing_buckets_of_same_version(self, store, configurator, definition):
        """测试只更新同一版本的已有分桶."""
        store.seed("logs-v2-2016.02.28", mappings={"properties": {"email": {"type": "keyword"}}})
        store.seed("logs-v1-2016.02.28", mappings={"properties": {"email": {"type": "keyword"}}})

        result = configurator.configure(definition)

        assert result.updated == ["logs-v2-2016.02.28"]
        assert result.added_fields == {"logs-v2-2016.02.28": ["age"]}
        assert "age" not in store.get_mapping("logs-v1-2016.02.28")["properties"]


class TestCreateBucket:
    """分桶创建测试."""

    def test_already_exists_is_success(self, store, configurator):
        """测试并发创建导致已存在时视为成功."""
        definition = IndexDefinition("logs", granularity=TimeGranularity.DAILY)
        bucket = Bucket("logs", 1, TimeGranularity.DAILY, datetime(2016, 2, 29, tzinfo=UTC))
        store.seed(bucket.index_name)

        assert configurator.create_bucket(definition, bucket, {"logs"}) is False

    def test_creates_with_aliases(self, store, configurator):
        """测试创建时一并挂载初始别名."""
        definition = IndexDefinition("logs", granularity=TimeGranularity.DAILY)
        bucket = Bucket("logs", 1, TimeGranularity.DAILY, datetime(2016, 2, 29, tzinfo=UTC))

        assert configurator.create_bucket(definition, bucket, {"logs", "logs-today"})
        assert store.aliases_of("logs-v1-2016.02.29") == {"logs", "logs-today"}
