"""Delegation tree - in-memory hierarchy with JSON loading"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from delegation_tree.hierarchy.types import (
    Address,
    AuthorityConfiguration,
    HasParent,
    IsRoot,
    NodeHandle,
    NodeIdentity,
)


@dataclass
class _StoredNode:
    identity: NodeIdentity
    children: List[NodeHandle] = field(default_factory=list)


class InMemoryHierarchy:
    """Dict-backed authority, node accessor and balance reader.

    Does not enforce fan-out or depth limits, so tests can build malformed
    hierarchies. Unknown nodes raise KeyError.
    """

    def __init__(self, configuration: Optional[AuthorityConfiguration] = None):
        self._configuration = configuration or AuthorityConfiguration(
            initial_max_fanout=8, decay_factor=2
        )
        self._nodes: Dict[NodeHandle, _StoredNode] = {}
        self._pairs: Dict[Tuple[Address, Address], NodeHandle] = {}
        self._balances: Dict[Union[Address, NodeHandle], int] = {}

    def add_root(self, node: str, delegator: str, delegatee: str, votes: int = 0) -> NodeHandle:
        return self._add(node, IsRoot(), delegator, delegatee, votes)

    def add_child(
        self, parent: str, node: str, delegator: str, delegatee: str, votes: int = 0
    ) -> NodeHandle:
        parent_handle = NodeHandle(parent)
        handle = self._add(node, HasParent(parent_handle), delegator, delegatee, votes)
        self._nodes[parent_handle].children.append(handle)
        return handle

    def set_parent(self, node: str, parent: str) -> None:
        """Rewire a parent link without touching children lists (for corrupt data)."""
        stored = self._nodes[NodeHandle(node)]
        stored.identity = NodeIdentity(
            parent=HasParent(NodeHandle(parent)),
            delegator=stored.identity.delegator,
            delegatee=stored.identity.delegatee,
        )

    def set_votes(self, node: str, votes: int) -> None:
        self._balances[NodeHandle(node)] = votes

    def _add(
        self,
        node: str,
        parent: Union[HasParent, IsRoot],
        delegator: str,
        delegatee: str,
        votes: int,
    ) -> NodeHandle:
        handle = NodeHandle(node)
        if handle in self._nodes:
            raise ValueError(f"Node already exists: {node}")
        if isinstance(parent, HasParent) and parent.node not in self._nodes:
            raise KeyError(f"Unknown parent node: {parent.node}")
        identity = NodeIdentity(
            parent=parent, delegator=Address(delegator), delegatee=Address(delegatee)
        )
        pair = (identity.delegator, identity.delegatee)
        if pair in self._pairs:
            raise ValueError(f"Delegation already exists: {delegator} -> {delegatee}")
        self._nodes[handle] = _StoredNode(identity=identity)
        self._pairs[pair] = handle
        self._balances[handle] = votes
        return handle

    # NodeAccessor

    async def identity(self, node: NodeHandle) -> NodeIdentity:
        return self._nodes[node].identity

    async def children(self, node: NodeHandle) -> List[NodeHandle]:
        return list(self._nodes[node].children)

    async def resolve(self, parent: NodeHandle, child: NodeHandle) -> NodeHandle:
        if child not in self._nodes[parent].children:
            raise KeyError(f"{child} is not a child of {parent}")
        return child

    # BalanceReader

    async def balance_of(self, account_or_node: Union[Address, NodeHandle]) -> int:
        return self._balances.get(account_or_node, 0)

    # Authority

    async def lookup(self, delegator: Address, delegatee: Address) -> Optional[NodeHandle]:
        return self._pairs.get((delegator, delegatee))

    async def configuration(self) -> AuthorityConfiguration:
        return self._configuration

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> InMemoryHierarchy:
        """Build a hierarchy from nested node dicts.

        Format::

            {
              "configuration": {"initial_max_fanout": 8, "decay_factor": 2},
              "roots": [
                {"node": "r", "delegator": "alice", "delegatee": "bob", "votes": 100,
                 "children": [{"node": "c", "delegator": "bob", "delegatee": "carol"}]}
              ]
            }
        """
        configuration = None
        if "configuration" in data:
            configuration = AuthorityConfiguration(
                initial_max_fanout=int(data["configuration"]["initial_max_fanout"]),
                decay_factor=int(data["configuration"]["decay_factor"]),
            )
        hierarchy = cls(configuration)

        pending: List[Tuple[Optional[str], Dict[str, Any]]] = [
            (None, root) for root in data.get("roots", [])
        ]
        while pending:
            parent, entry = pending.pop(0)
            votes = int(entry.get("votes", 0))
            if parent is None:
                hierarchy.add_root(entry["node"], entry["delegator"], entry["delegatee"], votes)
            else:
                hierarchy.add_child(
                    parent, entry["node"], entry["delegator"], entry["delegatee"], votes
                )
            pending.extend((entry["node"], child) for child in entry.get("children", []))

        return hierarchy

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> InMemoryHierarchy:
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
