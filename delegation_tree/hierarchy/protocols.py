"""Read interfaces the engine consumes from its collaborators.

The engine never writes. Each method is a potential suspension point (network
or storage latency) and may raise; the engine wraps such failures in
``UpstreamUnavailableError``.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Union, runtime_checkable

from .types import Address, AuthorityConfiguration, NodeHandle, NodeIdentity


@runtime_checkable
class NodeAccessor(Protocol):
    """Protocol for reading one node's fields."""

    async def identity(self, node: NodeHandle) -> NodeIdentity:
        """Return the node's parent link, delegator and delegatee."""
        ...

    async def children(self, node: NodeHandle) -> List[NodeHandle]:
        """Return the node's children in the order the authority reports them."""
        ...

    async def resolve(self, parent: NodeHandle, child: NodeHandle) -> NodeHandle:
        """Return the node handle for a child entry of ``parent``."""
        ...


@runtime_checkable
class BalanceReader(Protocol):
    """Protocol for reading current voting weight."""

    async def balance_of(self, account_or_node: Union[Address, NodeHandle]) -> int:
        ...


@runtime_checkable
class Authority(Protocol):
    """Protocol for the factory that creates and tracks nodes."""

    async def lookup(self, delegator: Address, delegatee: Address) -> Optional[NodeHandle]:
        """Return the node for a (delegator, delegatee) pair, or None."""
        ...

    async def configuration(self) -> AuthorityConfiguration:
        """Return the fan-out parameters the authority enforces."""
        ...
