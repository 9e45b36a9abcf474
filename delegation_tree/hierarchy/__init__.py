"""Delegation Hierarchy Package.

Read-only queries over a bounded delegation tree maintained by an external
authority: root location, ancestor walks, child enumeration and level-indexed
snapshots annotated with voting weight.

Example:
    from delegation_tree.hierarchy import (
        DelegationQueryEngine,
        NodeHandle,
        TraversalBounds,
    )

    engine = await DelegationQueryEngine.create(
        accessor=source,
        balances=source,
        authority=source,
        bounds=TraversalBounds(max_chain_length=5),
    )
    snapshot = await engine.build_snapshot(NodeHandle("0xabc"))
    for depth, level in enumerate(snapshot.levels):
        print(depth, [member.votes for member in level])
"""

from delegation_tree.hierarchy.types import (
    Address,
    AuthorityConfiguration,
    Delegation,
    DelegationWithVotes,
    HasParent,
    IsRoot,
    LevelSnapshot,
    NodeHandle,
    NodeIdentity,
    NodeParent,
    TraversalBounds,
    TreeSnapshot,
)
from delegation_tree.hierarchy.errors import (
    ConfigurationMismatchError,
    CorruptHierarchyError,
    DelegationNotFoundError,
    DelegationTreeError,
    QueryCancelledError,
    UpstreamUnavailableError,
)
from delegation_tree.hierarchy.protocols import Authority, BalanceReader, NodeAccessor
from delegation_tree.hierarchy.cancellation import CancellationToken
from delegation_tree.hierarchy.engine import DelegationQueryEngine
from delegation_tree.hierarchy.service import DelegationQueryService

__all__ = [
    # Core types
    "Address",
    "NodeHandle",
    "IsRoot",
    "HasParent",
    "NodeParent",
    "NodeIdentity",
    "Delegation",
    "DelegationWithVotes",
    "LevelSnapshot",
    "TreeSnapshot",
    "AuthorityConfiguration",
    "TraversalBounds",
    # Errors
    "DelegationTreeError",
    "CorruptHierarchyError",
    "DelegationNotFoundError",
    "QueryCancelledError",
    "UpstreamUnavailableError",
    "ConfigurationMismatchError",
    # Collaborator protocols
    "NodeAccessor",
    "BalanceReader",
    "Authority",
    # Engine
    "CancellationToken",
    "DelegationQueryEngine",
    "DelegationQueryService",
]
