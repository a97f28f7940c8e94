"""
Node Registry - read-only lookup from node type to metadata and emitter.
Built once from the catalogue and the emitter table, then injected into the
orchestrator and validator. Construction fails if the two disagree.
"""

import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from pydantic import BaseModel, ConfigDict

from catalyst.compiler.emitters import EMITTERS
from catalyst.compiler.fragments import Emitter
from catalyst.nodes.catalog import NODE_CATALOG, NodeMetadata
from catalyst.workflow.manifest import NodeCategory

logger = logging.getLogger(__name__)


class RegistryIntegrityError(ValueError):
    """Catalogue and emitter table are out of step."""


class RegistryEntry(BaseModel):
    """Metadata and emitter for one implemented node type."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    metadata: NodeMetadata
    emitter: Emitter


class UnknownNodeType(BaseModel):
    """Lookup result for a type the registry cannot compile."""
    model_config = ConfigDict(frozen=True)

    node_type: str
    known: bool = False  # True when the type exists in the catalogue but has no emitter

    @property
    def message(self) -> str:
        if self.known:
            return f"Node type '{self.node_type}' is not implemented yet and cannot be compiled"
        return f"Unknown node type '{self.node_type}'"


class NodeRegistry:
    """
    Central registry of node types. Lookups never raise: unknown or
    unimplemented types come back as an UnknownNodeType signal.
    """

    def __init__(self, catalog: Iterable[NodeMetadata], emitters: Mapping[str, Emitter]):
        metadata: Dict[str, NodeMetadata] = {m.type.value: m for m in catalog}
        emitter_map: Dict[str, Emitter] = {getattr(k, "value", k): v for k, v in emitters.items()}

        problems: List[str] = []
        for type_id, meta in metadata.items():
            if meta.implemented and type_id not in emitter_map:
                problems.append(f"'{type_id}' is marked implemented but has no emitter")
        for type_id in emitter_map:
            if type_id not in metadata:
                problems.append(f"emitter registered for '{type_id}' has no metadata")
            elif not metadata[type_id].implemented:
                problems.append(f"'{type_id}' has an emitter but is not marked implemented")
        if problems:
            raise RegistryIntegrityError("Node registry is inconsistent: " + "; ".join(problems))

        self._metadata = MappingProxyType(metadata)
        self._emitters = MappingProxyType(emitter_map)
        logger.info(f"[REGISTRY] {len(metadata)} node types, {len(emitter_map)} implemented")

    # ── Lookup ────────────────────────────────────────────────────────

    def lookup(self, node_type: str) -> Union[RegistryEntry, UnknownNodeType]:
        meta = self._metadata.get(node_type)
        emitter = self._emitters.get(node_type)
        if meta is None or emitter is None:
            return UnknownNodeType(node_type=node_type, known=meta is not None)
        return RegistryEntry(metadata=meta, emitter=emitter)

    def get_metadata(self, node_type: str) -> Optional[NodeMetadata]:
        return self._metadata.get(node_type)

    def is_known(self, node_type: str) -> bool:
        return node_type in self._metadata

    def is_implemented(self, node_type: str) -> bool:
        return node_type in self._emitters

    def required_config_fields(self, node_type: str) -> List[str]:
        meta = self._metadata.get(node_type)
        return [f.path for f in meta.config_fields if f.required] if meta else []

    def conditional_ports(self, node_type: str) -> Set[str]:
        meta = self._metadata.get(node_type)
        return {h.id for h in meta.outputs if h.type == "conditional"} if meta else set()

    # ── Palette ───────────────────────────────────────────────────────

    def list_all(self, category: Optional[NodeCategory] = None) -> List[NodeMetadata]:
        nodes = list(self._metadata.values())
        if category:
            nodes = [n for n in nodes if n.category == category]
        return nodes

    def list_implemented(self) -> List[NodeMetadata]:
        return [m for m in self._metadata.values() if m.implemented]

    def get_stats(self) -> Dict[str, object]:
        by_category: Dict[str, Dict[str, int]] = {}
        for meta in self._metadata.values():
            bucket = by_category.setdefault(meta.category.value, {"total": 0, "implemented": 0})
            bucket["total"] += 1
            bucket["implemented"] += int(meta.implemented)
        implemented = len(self._emitters)
        return {
            "total": len(self._metadata),
            "implemented": implemented,
            "stubs": len(self._metadata) - implemented,
            "by_category": by_category,
        }

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._metadata

    def __len__(self) -> int:
        return len(self._metadata)


@lru_cache(maxsize=1)
def build_node_registry() -> NodeRegistry:
    """The default registry: full catalogue plus every built-in emitter."""
    return NodeRegistry(NODE_CATALOG, EMITTERS)
