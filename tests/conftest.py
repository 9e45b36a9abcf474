"""Shared fixtures for delegation tree tests.

The ``hierarchy`` fixture builds this tree (votes in parentheses)::

    r  alice -> bob   (100)
    ├── c1  bob -> carol  (40)
    │   ├── g1  carol -> erin   (10)
    │   └── g2  carol -> frank  (5)
    └── c2  bob -> dave   (30)
        └── g3  dave -> gina    (7)
"""

import pytest

from delegation_tree.hierarchy import DelegationQueryEngine, TraversalBounds
from delegation_tree.sources.memory import InMemoryHierarchy


def build_chain(length: int) -> InMemoryHierarchy:
    """A single path n0 -> n1 -> ... with n0 as root."""
    hierarchy = InMemoryHierarchy()
    hierarchy.add_root("n0", "acct0", "acct1", votes=10)
    for i in range(1, length):
        hierarchy.add_child(f"n{i-1}", f"n{i}", f"acct{i}", f"acct{i+1}", votes=10 - i)
    return hierarchy


@pytest.fixture
def hierarchy():
    """Two-level tree used across engine tests."""
    tree = InMemoryHierarchy()
    tree.add_root("r", "alice", "bob", votes=100)
    tree.add_child("r", "c1", "bob", "carol", votes=40)
    tree.add_child("r", "c2", "bob", "dave", votes=30)
    tree.add_child("c1", "g1", "carol", "erin", votes=10)
    tree.add_child("c1", "g2", "carol", "frank", votes=5)
    tree.add_child("c2", "g3", "dave", "gina", votes=7)
    return tree


@pytest.fixture
def chain_factory():
    """Factory for single-path hierarchies of a given length."""
    return build_chain


@pytest.fixture
def make_engine():
    """Build an engine whose three collaborators are one hierarchy object."""

    def _make(source, **bounds_kwargs):
        return DelegationQueryEngine(source, source, source, TraversalBounds(**bounds_kwargs))

    return _make


@pytest.fixture
def engine(hierarchy, make_engine):
    return make_engine(hierarchy)
