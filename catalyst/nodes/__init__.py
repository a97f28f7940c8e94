"""Node Catalogue - palette metadata for every workflow node type"""
from .catalog import NODE_CATALOG, ConfigFieldDefinition, HandleDefinition, NodeMetadata

__all__ = [
    "NODE_CATALOG",
    "ConfigFieldDefinition",
    "HandleDefinition",
    "NodeMetadata",
]
