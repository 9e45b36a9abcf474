"""Delegation query engine.

Provides the DelegationQueryEngine class for read-only queries over a bounded
delegation hierarchy: root location, ancestor walks, child enumeration and
level-by-level tree snapshots annotated with voting weight.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from .cancellation import CancellationToken
from .errors import (
    ConfigurationMismatchError,
    CorruptHierarchyError,
    DelegationNotFoundError,
    DelegationTreeError,
    UpstreamUnavailableError,
)
from .protocols import Authority, BalanceReader, NodeAccessor
from .types import (
    Address,
    AuthorityConfiguration,
    Delegation,
    DelegationWithVotes,
    IsRoot,
    LevelSnapshot,
    NodeHandle,
    NodeIdentity,
    TraversalBounds,
    TreeSnapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


class DelegationQueryEngine:
    """Bounded, breadth-first query engine over an external delegation tree.

    Every walk is capped by ``bounds.max_chain_length``, so termination does not
    depend on the shape of the data the collaborators report.

    Attributes:
        accessor: Reads node identity, children and child resolution.
        balances: Reads the voting weight held at a node.
        authority: Looks up nodes by (delegator, delegatee) and reports the
            fan-out configuration.
        bounds: Traversal bounds validated against the authority once.
        _lock: asyncio.Lock guarding the one-time initialization check.
        _semaphore: Limits concurrent sibling reads within a level.
    """

    def __init__(
        self,
        accessor: NodeAccessor,
        balances: BalanceReader,
        authority: Authority,
        bounds: Optional[TraversalBounds] = None,
    ):
        """Initialize the engine without contacting the authority.

        Call ``initialize()`` (or build through ``create()``) to run the
        configuration check up front; otherwise the first query runs it.

        Args:
            accessor: Node accessor collaborator.
            balances: Balance reader collaborator.
            authority: Authority collaborator.
            bounds: Traversal bounds; defaults to the stock protocol values.
        """
        self.accessor = accessor
        self.balances = balances
        self.authority = authority
        self.bounds = bounds or TraversalBounds()
        self._configuration: Optional[AuthorityConfiguration] = None
        self._mismatch: Optional[str] = None
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self.bounds.sibling_concurrency)

    @classmethod
    async def create(
        cls,
        accessor: NodeAccessor,
        balances: BalanceReader,
        authority: Authority,
        bounds: Optional[TraversalBounds] = None,
    ) -> "DelegationQueryEngine":
        """Build an engine and run the initialization check.

        Raises:
            ConfigurationMismatchError: If the authority disagrees with bounds.
            UpstreamUnavailableError: If the configuration cannot be read.
        """
        engine = cls(accessor, balances, authority, bounds)
        await engine.initialize()
        return engine

    @property
    def initialized(self) -> bool:
        return self._configuration is not None

    async def initialize(self) -> AuthorityConfiguration:
        """Validate the authority's fan-out parameters against the bounds.

        The configuration is read at most once. A mismatch is permanent: the
        engine refuses every later query. A failed read is not remembered and
        the check runs again on the next call.

        Returns:
            The configuration reported by the authority.

        Raises:
            ConfigurationMismatchError: On mismatch, now or previously.
            UpstreamUnavailableError: If the configuration cannot be read.
        """
        async with self._lock:
            if self._mismatch is not None:
                raise ConfigurationMismatchError(self._mismatch)
            if self._configuration is not None:
                return self._configuration

            configuration = await self._read("configuration", self.authority.configuration())
            if not self.bounds.matches(configuration):
                self._mismatch = (
                    f"Authority reports fan-out {configuration.initial_max_fanout} with decay "
                    f"{configuration.decay_factor}, engine bounds assume fan-out "
                    f"{self.bounds.initial_max_fanout} with decay {self.bounds.decay_factor}"
                )
                logger.error("Refusing to serve queries: %s", self._mismatch)
                raise ConfigurationMismatchError(self._mismatch)

            self._configuration = configuration
            logger.debug(
                "Engine ready (fan-out=%d, decay=%d, max chain length=%d)",
                configuration.initial_max_fanout,
                configuration.decay_factor,
                self.bounds.max_chain_length,
            )
            return configuration

    async def lookup(self, delegator: Address, delegatee: Address) -> NodeHandle:
        """Resolve a (delegator, delegatee) pair to its node.

        Raises:
            DelegationNotFoundError: If the authority has no such node.
        """
        await self._ensure_ready()
        return await self._lookup(delegator, delegatee)

    async def locate_root(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> Delegation:
        """Follow parent links from ``node`` to the root of its tree.

        Raises:
            CorruptHierarchyError: If no root is reached within the chain
                length bound.
        """
        await self._ensure_ready()
        return await self._locate_root(node, token)

    async def walk_ancestors(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> List[Delegation]:
        """Return ``node`` and its ancestors, ordered outward to the root.

        The result holds at most ``max_chain_length`` entries. A full-length
        result that does not end at a root means the walk saturated the bound;
        that is not treated as an error.
        """
        await self._ensure_ready()
        limit = self.bounds.max_chain_length
        chain: List[Delegation] = []
        current = node

        while len(chain) < limit:
            _check(token)
            identity = await self._identity(current)
            chain.append(_delegation(identity, current))
            if isinstance(identity.parent, IsRoot):
                return chain
            current = identity.parent.node

        logger.debug("Ancestor walk from %s saturated at %d entries", node, limit)
        return chain

    async def enumerate_children(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> List[Delegation]:
        """Return the direct children of ``node`` in the order reported."""
        await self._ensure_ready()
        return await self._enumerate_children(node, token)

    async def annotate(self, delegation: Delegation) -> DelegationWithVotes:
        """Pair a delegation with the voting weight currently held at its node."""
        await self._ensure_ready()
        return await self._annotate(delegation)

    async def annotate_level(
        self, delegations: Sequence[Delegation], token: Optional[CancellationToken] = None
    ) -> LevelSnapshot:
        """Annotate several delegations, keeping their order."""
        await self._ensure_ready()
        return tuple(await self._map_siblings(self._annotate, list(delegations), token))

    async def build_snapshot(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> TreeSnapshot:
        """Snapshot the whole tree containing ``node``, level by level.

        Level 0 is the root. Each following level holds the children of every
        member of the previous level, grouped by parent in the previous level's
        order. Building stops at the first empty level or once
        ``max_chain_length`` levels exist.

        Raises:
            QueryCancelledError: If ``token`` is cancelled before completion.
        """
        await self._ensure_ready()
        _check(token)
        root = await self._locate_root(node, token)
        levels: List[LevelSnapshot] = [(await self._annotate(root),)]

        while len(levels) < self.bounds.max_chain_length:
            _check(token)
            members: List[Delegation] = []
            for parent in levels[-1]:
                members.extend(await self._enumerate_children(parent.node, token))
            if not members:
                break
            annotated = await self._map_siblings(self._annotate, members, token)
            levels.append(tuple(annotated))
            logger.debug(
                "Snapshot of %s: level %d has %d members", root.node, len(levels) - 1, len(members)
            )

        return TreeSnapshot(root=root, levels=tuple(levels))

    async def build_snapshot_for_pair(
        self,
        delegator: Address,
        delegatee: Address,
        token: Optional[CancellationToken] = None,
    ) -> TreeSnapshot:
        """Snapshot the tree containing the node for (delegator, delegatee).

        Raises:
            DelegationNotFoundError: If the authority has no such node.
        """
        await self._ensure_ready()
        node = await self._lookup(delegator, delegatee)
        return await self.build_snapshot(node, token)

    async def _ensure_ready(self) -> None:
        if self._configuration is None or self._mismatch is not None:
            await self.initialize()

    async def _lookup(self, delegator: Address, delegatee: Address) -> NodeHandle:
        node = await self._read("lookup", self.authority.lookup(delegator, delegatee))
        if node is None:
            raise DelegationNotFoundError(str(delegator), str(delegatee))
        return node

    async def _locate_root(
        self, node: NodeHandle, token: Optional[CancellationToken]
    ) -> Delegation:
        current = node
        for _ in range(self.bounds.max_chain_length):
            _check(token)
            identity = await self._identity(current)
            if isinstance(identity.parent, IsRoot):
                return _delegation(identity, current)
            current = identity.parent.node

        raise CorruptHierarchyError(
            f"No root reached from {node} within {self.bounds.max_chain_length} steps"
        )

    async def _enumerate_children(
        self, node: NodeHandle, token: Optional[CancellationToken]
    ) -> List[Delegation]:
        children = await self._read("children", self.accessor.children(node))

        async def child_delegation(child: NodeHandle) -> Delegation:
            resolved = await self._read("resolve", self.accessor.resolve(node, child))
            return _delegation(await self._identity(resolved), resolved)

        return await self._map_siblings(child_delegation, children, token)

    async def _annotate(self, delegation: Delegation) -> DelegationWithVotes:
        votes = await self._read("balance_of", self.balances.balance_of(delegation.node))
        return delegation.with_votes(votes)

    async def _identity(self, node: NodeHandle) -> NodeIdentity:
        return await self._read("identity", self.accessor.identity(node))

    async def _map_siblings(
        self,
        func: Callable[[T], Awaitable[U]],
        items: Sequence[T],
        token: Optional[CancellationToken],
    ) -> List[U]:
        """Apply ``func`` to every item of one level, preserving item order."""
        if self.bounds.sibling_concurrency == 1 or len(items) <= 1:
            results: List[U] = []
            for item in items:
                _check(token)
                results.append(await func(item))
            return results

        async def run(item: T) -> U:
            async with self._semaphore:
                _check(token)
                return await func(item)

        tasks = [asyncio.ensure_future(run(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _read(self, operation: str, call: Awaitable[T]) -> T:
        """Await a collaborator call, wrapping foreign failures."""
        try:
            return await call
        except DelegationTreeError:
            raise
        except Exception as e:
            raise UpstreamUnavailableError(f"{operation} failed: {e}", operation=operation) from e


def _check(token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()


def _delegation(identity: NodeIdentity, node: NodeHandle) -> Delegation:
    return Delegation(delegator=identity.delegator, delegatee=identity.delegatee, node=node)
