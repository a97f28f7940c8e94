"""
Tests for the node registry and catalogue.
Run: pytest tests/test_registry.py -v
"""
import pytest

from catalyst.compiler.emitters import EMITTERS
from catalyst.compiler.registry import NodeRegistry, RegistryEntry, RegistryIntegrityError, UnknownNodeType
from catalyst.nodes.catalog import NODE_CATALOG
from catalyst.workflow.manifest import NodeCategory, NodeType

IMPLEMENTED = {
    "httpEndpoint", "scheduledTask", "anthropicCompletion", "openaiCompletion", "groqCompletion",
    "embeddingGenerate", "promptTemplate", "llmRouter", "qdrantSearch", "postgresQuery",
    "condition", "editFields", "log",
}


class TestCatalogue:

    def test_every_node_type_has_metadata(self):
        assert {m.type for m in NODE_CATALOG} == set(NodeType)
        assert len(NODE_CATALOG) == 55

    def test_implemented_set(self, node_registry):
        assert {m.type.value for m in node_registry.list_implemented()} == IMPLEMENTED

    def test_condition_has_conditional_ports(self, node_registry):
        assert node_registry.conditional_ports("condition") == {"true", "false"}
        assert node_registry.conditional_ports("log") == set()

    def test_required_fields(self, node_registry):
        assert "condition" in node_registry.required_config_fields("condition")
        assert node_registry.required_config_fields("nope") == []


class TestLookup:

    def test_implemented_type_returns_entry(self, node_registry):
        entry = node_registry.lookup("promptTemplate")
        assert isinstance(entry, RegistryEntry)
        assert entry.metadata.name == "Prompt Template"

    def test_unknown_type(self, node_registry):
        entry = node_registry.lookup("teleport")
        assert isinstance(entry, UnknownNodeType)
        assert entry.known is False
        assert "Unknown node type 'teleport'" in entry.message

    def test_stub_type(self, node_registry):
        entry = node_registry.lookup("webhookReceiver")
        assert isinstance(entry, UnknownNodeType)
        assert entry.known is True
        assert "not implemented" in entry.message

    def test_membership_and_len(self, node_registry):
        assert "webhookReceiver" in node_registry
        assert "teleport" not in node_registry
        assert len(node_registry) == 55
        assert node_registry.is_known("parallel")
        assert not node_registry.is_implemented("parallel")


class TestPalette:

    def test_filter_by_category(self, node_registry):
        triggers = node_registry.list_all(NodeCategory.TRIGGERS)
        assert triggers
        assert all(m.category == NodeCategory.TRIGGERS for m in triggers)

    def test_stats(self, node_registry):
        stats = node_registry.get_stats()
        assert stats["total"] == 55
        assert stats["implemented"] == 13
        assert stats["stubs"] == 42
        assert stats["by_category"]["control"]["implemented"] == 1


class TestIntegrity:

    def test_missing_emitter_for_implemented_type(self):
        emitters = dict(EMITTERS)
        emitters.pop(NodeType.LOG)
        with pytest.raises(RegistryIntegrityError, match="'log' is marked implemented"):
            NodeRegistry(NODE_CATALOG, emitters)

    def test_emitter_for_stub_type(self):
        emitters = dict(EMITTERS)
        emitters[NodeType.DELAY] = EMITTERS[NodeType.LOG]
        with pytest.raises(RegistryIntegrityError, match="'delay' has an emitter"):
            NodeRegistry(NODE_CATALOG, emitters)

    def test_emitter_without_metadata(self):
        catalog = [m for m in NODE_CATALOG if m.type != NodeType.LOG]
        with pytest.raises(RegistryIntegrityError, match="no metadata"):
            NodeRegistry(catalog, EMITTERS)
