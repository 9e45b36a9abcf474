"""Result-returning facade over DelegationQueryEngine.

Wraps every engine query so callers get ``Ok(value)`` or an ``Err`` carrying
the taxonomy code and retryable flag instead of an exception.
"""

from __future__ import annotations

import logging
from typing import Awaitable, List, Optional, TypeVar

from delegation_tree.core.result import Err, Ok, Result

from .cancellation import CancellationToken
from .engine import DelegationQueryEngine
from .errors import DelegationTreeError
from .types import Address, AuthorityConfiguration, Delegation, NodeHandle, TreeSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DelegationQueryService:
    """Query service returning Result types for explicit error handling."""

    def __init__(self, engine: DelegationQueryEngine):
        self.engine = engine

    async def initialize(self) -> Result[AuthorityConfiguration]:
        return await self._run("initialize", self.engine.initialize())

    async def lookup(self, delegator: Address, delegatee: Address) -> Result[NodeHandle]:
        return await self._run("lookup", self.engine.lookup(delegator, delegatee))

    async def root(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> Result[Delegation]:
        return await self._run("root", self.engine.locate_root(node, token))

    async def ancestors(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> Result[List[Delegation]]:
        return await self._run("ancestors", self.engine.walk_ancestors(node, token))

    async def children(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> Result[List[Delegation]]:
        return await self._run("children", self.engine.enumerate_children(node, token))

    async def snapshot(
        self, node: NodeHandle, token: Optional[CancellationToken] = None
    ) -> Result[TreeSnapshot]:
        return await self._run("snapshot", self.engine.build_snapshot(node, token))

    async def snapshot_for_pair(
        self,
        delegator: Address,
        delegatee: Address,
        token: Optional[CancellationToken] = None,
    ) -> Result[TreeSnapshot]:
        return await self._run(
            "snapshot_for_pair", self.engine.build_snapshot_for_pair(delegator, delegatee, token)
        )

    async def _run(self, operation: str, call: Awaitable[T]) -> Result[T]:
        try:
            return Ok(await call)
        except DelegationTreeError as e:
            logger.debug("%s failed with %s: %s", operation, e.code, e)
            return Err.from_exception(e)
