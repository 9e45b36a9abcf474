"""Errors raised by the delegation query engine.

Every error carries a ``code`` and a ``retryable`` flag so the service layer
can turn it into an ``Err`` without inspecting the type.
"""

from typing import Optional


class DelegationTreeError(Exception):
    """Base class for all engine errors."""

    code = "DELEGATION_TREE_ERROR"
    retryable = False

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class CorruptHierarchyError(DelegationTreeError):
    """An upward walk did not reach a root within the chain length bound."""

    code = "CORRUPT_HIERARCHY"


class DelegationNotFoundError(DelegationTreeError):
    """No node exists for a (delegator, delegatee) pair."""

    code = "NOT_FOUND"

    def __init__(self, delegator: str, delegatee: str):
        self.delegator = delegator
        self.delegatee = delegatee
        super().__init__(f"No delegation from {delegator} to {delegatee}")


class QueryCancelledError(DelegationTreeError):
    """Cooperative cancellation was observed while building a result."""

    code = "CANCELLED"
    retryable = True


class UpstreamUnavailableError(DelegationTreeError):
    """A read from the authority, node accessor or balance reader failed."""

    code = "UPSTREAM_UNAVAILABLE"
    retryable = True

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class ConfigurationMismatchError(DelegationTreeError):
    """The authority's fan-out or decay factor disagrees with the engine bounds."""

    code = "CONFIGURATION_MISMATCH"
