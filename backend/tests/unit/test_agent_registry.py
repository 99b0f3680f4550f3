"""Unit tests for AgentRegistry and AgentDefinition"""

import pytest
from sqlalchemy.exc import OperationalError

from core.agent_registry import (
    AgentDefinition,
    AgentRegistry,
    extract_bootstrap_source,
    normalize_dependencies,
)
from core.errors import StoreUnavailable


AGENT_CODE = '''
import json

async def bootstrap(config, context):
    context["ready"] = True
    return {"success": True}

async def execute(params, context):
    return {"value": json.dumps(params)}

AGENT_FORMAT = {"bootstrap": bootstrap, "execute": execute}
'''


class TestAgentDefinition:
    """Definition parsing and validation"""

    def test_dependencies_from_comma_string(self):
        definition = AgentDefinition(name="A", dependencies="os, path ,  json,")
        assert definition.dependencies == ["os", "path", "json"]

    def test_normalize_dependencies_ignores_other_types(self):
        assert normalize_dependencies(None) == []
        assert normalize_dependencies(42) == []
        assert normalize_dependencies(["a", " b ", ""]) == ["a", "b"]

    def test_invalid_execution_target(self):
        with pytest.raises(ValueError) as exc_info:
            AgentDefinition(name="A", execution_target="cloud")
        assert "execution target" in str(exc_info.value)

    def test_invalid_database_type(self):
        with pytest.raises(ValueError):
            AgentDefinition(name="A", database_type="postgres")

    def test_from_dict_accepts_camel_case(self):
        definition = AgentDefinition.from_dict({
            "executionTarget": "backend",
            "requiresDatabase": True,
            "databaseType": "duckdb",
            "dependencies": "httpx",
            "unknownKey": "ignored",
        }, name="Camel")

        assert definition.name == "Camel"
        assert definition.execution_target == "backend"
        assert definition.requires_database is True
        assert definition.database_type == "duckdb"
        assert definition.dependencies == ["httpx"]

    def test_from_dict_requires_name(self):
        with pytest.raises(ValueError):
            AgentDefinition.from_dict({"description": "nameless"})

    def test_bootstrap_extracted_from_code(self):
        definition = AgentDefinition(name="A", code=AGENT_CODE)
        assert definition.bootstrap_source.startswith("async def bootstrap(config, context):")
        assert 'context["ready"] = True' in definition.bootstrap_source
        assert "execute" not in definition.bootstrap_source

    def test_extract_bootstrap_from_method(self):
        code = (
            "class Agent:\n"
            "    def bootstrap(self, config, context):\n"
            "        self.ready = True\n"
            "\n"
            "    def execute(self, params, context):\n"
            "        return {}\n"
        )
        source = extract_bootstrap_source(code)
        assert source == "    def bootstrap(self, config, context):\n        self.ready = True"

    def test_extract_bootstrap_absent(self):
        assert extract_bootstrap_source(None) is None
        assert extract_bootstrap_source("def execute(params, context):\n    return 1\n") is None

    def test_to_dict_without_code(self):
        data = AgentDefinition(name="A", code=AGENT_CODE).to_dict(include_code=False)
        assert "code" not in data
        assert "bootstrap_source" not in data
        assert data["name"] == "A"


class TestAgentRegistry:
    """Persistence against in-memory SQLite"""

    @pytest.fixture
    def registry(self, session_factory):
        return AgentRegistry(session_factory)

    def test_upsert_inserts_and_finds(self, registry):
        stored = registry.upsert(AgentDefinition(
            name="EchoAgent",
            description="echo",
            dependencies=["json"],
            code=AGENT_CODE,
            secrets={"token": "abc"},
        ))

        assert stored.id is not None
        assert stored.created_at is not None

        found = registry.find("EchoAgent")
        assert found.description == "echo"
        assert found.dependencies == ["json"]
        assert found.code == AGENT_CODE
        assert found.bootstrap_source.startswith("async def bootstrap")
        assert found.secrets == {"token": "abc"}
        assert found.version == "v1"

    def test_upsert_updates_mutable_fields_only(self, registry):
        first = registry.upsert(AgentDefinition(name="A", description="one", secrets={"k": 1}, version="v1"))
        second = registry.upsert(AgentDefinition(name="A", description="two", secrets={"k": 2}, version="v9"))

        assert second.id == first.id
        assert second.description == "two"
        # secrets and version are written on insert only
        assert second.secrets == {"k": 1}
        assert second.version == "v1"
        assert second.updated_at >= first.updated_at
        assert registry.names() == ["A"]

    def test_find_missing(self, registry):
        assert registry.find("Nope") is None

    def test_list_and_delete(self, registry):
        registry.upsert(AgentDefinition(name="A"))
        registry.upsert(AgentDefinition(name="B", execution_target="backend", requires_database=True))

        assert set(registry.names()) == {"A", "B"}
        assert registry.delete("A") is True
        assert registry.delete("A") is False
        assert registry.names() == ["B"]

    def test_statistics(self, registry):
        registry.upsert(AgentDefinition(name="A"))
        registry.upsert(AgentDefinition(name="B", execution_target="backend", requires_database=True, database_type="sqlite"))

        stats = registry.get_statistics()
        assert stats["total_agents"] == 2
        assert stats["frontend_agents"] == 1
        assert stats["backend_agents"] == 1
        assert stats["database_agents"] == 1

    def test_store_failure_raises_store_unavailable(self, registry, monkeypatch):
        registry.ensure_schema()

        def broken_session():
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(registry, "_session_factory", broken_session)
        with pytest.raises(StoreUnavailable):
            registry.find("A")
        with pytest.raises(StoreUnavailable):
            registry.upsert(AgentDefinition(name="A"))

    def test_dependencies_round_trip(self, registry):
        registry.upsert(AgentDefinition(name="A", dependencies="a, b, c"))

        stored = registry.find("A")

        assert stored.dependencies == ["a", "b", "c"]
