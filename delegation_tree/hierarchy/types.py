from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Tuple, Union

if TYPE_CHECKING:
    from delegation_tree.core.settings import Settings


@dataclass(frozen=True)
class Address:
    """Account identity: the party granting or receiving voting power."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NodeHandle:
    """Identity of one node in the delegation tree. Not an account."""

    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class IsRoot:
    """Parent link of a node created directly by the authority."""


@dataclass(frozen=True)
class HasParent:
    """Parent link of a node created by another node."""

    node: NodeHandle


NodeParent = Union[HasParent, IsRoot]


@dataclass(frozen=True)
class NodeIdentity:
    parent: NodeParent
    delegator: Address
    delegatee: Address

    @property
    def is_root(self) -> bool:
        return isinstance(self.parent, IsRoot)


@dataclass(frozen=True)
class Delegation:
    delegator: Address
    delegatee: Address
    node: NodeHandle

    def with_votes(self, votes: int) -> DelegationWithVotes:
        return DelegationWithVotes(
            delegator=self.delegator,
            delegatee=self.delegatee,
            node=self.node,
            votes=votes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegator": self.delegator.value,
            "delegatee": self.delegatee.value,
            "node": self.node.id,
        }


@dataclass(frozen=True)
class DelegationWithVotes:
    delegator: Address
    delegatee: Address
    node: NodeHandle
    votes: int

    @property
    def delegation(self) -> Delegation:
        return Delegation(delegator=self.delegator, delegatee=self.delegatee, node=self.node)

    def to_dict(self) -> Dict[str, Any]:
        data = self.delegation.to_dict()
        data["votes"] = self.votes
        return data


LevelSnapshot = Tuple[DelegationWithVotes, ...]


@dataclass(frozen=True)
class TreeSnapshot:
    """Level-indexed view of a whole tree; level 0 holds only the root.

    Vote weights are read level by level, so the snapshot is a best-effort
    point-in-time approximation rather than a consistent cut.
    """

    root: Delegation
    levels: Tuple[LevelSnapshot, ...]

    @property
    def depth(self) -> int:
        return len(self.levels)

    def level(self, index: int) -> LevelSnapshot:
        return self.levels[index]

    def members(self) -> List[DelegationWithVotes]:
        return [member for level in self.levels for member in level]

    @property
    def total_votes(self) -> int:
        return sum(member.votes for member in self.members())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root.to_dict(),
            "levels": [[member.to_dict() for member in level] for level in self.levels],
        }


@dataclass(frozen=True)
class AuthorityConfiguration:
    initial_max_fanout: int
    decay_factor: int


@dataclass(frozen=True)
class TraversalBounds:
    """Bounds the engine relies on.

    ``max_chain_length`` caps both the ancestor walk and the number of snapshot
    levels. It was derived from ``initial_max_fanout`` and ``decay_factor``
    (ceil(log2(8)) + 2 for the stock protocol) and is only valid while the
    authority reports those same two values.
    """

    max_chain_length: int = 5
    initial_max_fanout: int = 8
    decay_factor: int = 2
    sibling_concurrency: int = 1

    def __post_init__(self):
        if self.max_chain_length <= 0:
            raise ValueError(f"max_chain_length must be > 0, got {self.max_chain_length}")
        if self.initial_max_fanout <= 0:
            raise ValueError(f"initial_max_fanout must be > 0, got {self.initial_max_fanout}")
        if self.decay_factor <= 1:
            raise ValueError(f"decay_factor must be > 1, got {self.decay_factor}")
        if self.sibling_concurrency <= 0:
            raise ValueError(f"sibling_concurrency must be > 0, got {self.sibling_concurrency}")

    @classmethod
    def from_settings(cls, settings: Settings) -> TraversalBounds:
        return cls(
            max_chain_length=settings.max_chain_length,
            initial_max_fanout=settings.initial_max_fanout,
            decay_factor=settings.decay_factor,
            sibling_concurrency=settings.sibling_concurrency,
        )

    def matches(self, configuration: AuthorityConfiguration) -> bool:
        return (
            configuration.initial_max_fanout == self.initial_max_fanout
            and configuration.decay_factor == self.decay_factor
        )
