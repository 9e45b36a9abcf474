"""Collaborator implementations: in-memory hierarchy and HTTP authority gateway"""

from delegation_tree.sources.http import HttpHierarchySource, create_http_source
from delegation_tree.sources.memory import InMemoryHierarchy

__all__ = [
    "HttpHierarchySource",
    "InMemoryHierarchy",
    "create_http_source",
]
