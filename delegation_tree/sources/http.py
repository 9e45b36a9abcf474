"""
HTTP collaborator for an authority gateway.

Implements NodeAccessor, BalanceReader and Authority over a small read-only
REST surface, with exponential backoff for transient failures. Failures that
survive the retries surface as UpstreamUnavailableError.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from delegation_tree.hierarchy.errors import UpstreamUnavailableError
from delegation_tree.hierarchy.types import (
    Address,
    AuthorityConfiguration,
    HasParent,
    IsRoot,
    NodeHandle,
    NodeIdentity,
)


logger = logging.getLogger(__name__)


class HttpHierarchySource:
    """Read-only client for an authority gateway.

    Endpoints:
        GET /configuration                      -> {"initial_max_fanout", "decay_factor"}
        GET /nodes/{id}                         -> {"parent", "delegator", "delegatee"}
        GET /nodes/{id}/children                -> {"children": [...]}
        GET /nodes/{parent}/children/{child}    -> {"node"}
        GET /lookup?delegator=..&delegatee=..   -> {"node"}, 404 when absent
        GET /balances/{id}                      -> {"balance"}

    A null ``parent`` marks a root node.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        initial_backoff: float = 0.5,
        max_backoff: float = 8.0,
        backoff_multiplier: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff_multiplier = backoff_multiplier
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "HttpHierarchySource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def identity(self, node: NodeHandle) -> NodeIdentity:
        data = await self._get_json(f"/nodes/{_segment(node.id)}")
        parent_id = data.get("parent")
        parent = IsRoot() if parent_id is None else HasParent(NodeHandle(str(parent_id)))
        return NodeIdentity(
            parent=parent,
            delegator=Address(str(data["delegator"])),
            delegatee=Address(str(data["delegatee"])),
        )

    async def children(self, node: NodeHandle) -> List[NodeHandle]:
        data = await self._get_json(f"/nodes/{_segment(node.id)}/children")
        return [NodeHandle(str(child)) for child in data["children"]]

    async def resolve(self, parent: NodeHandle, child: NodeHandle) -> NodeHandle:
        data = await self._get_json(
            f"/nodes/{_segment(parent.id)}/children/{_segment(child.id)}"
        )
        return NodeHandle(str(data["node"]))

    async def balance_of(self, account_or_node: Union[Address, NodeHandle]) -> int:
        data = await self._get_json(f"/balances/{_segment(str(account_or_node))}")
        return int(data["balance"])

    async def lookup(self, delegator: Address, delegatee: Address) -> Optional[NodeHandle]:
        data = await self._get_json(
            "/lookup",
            params={"delegator": delegator.value, "delegatee": delegatee.value},
            allow_not_found=True,
        )
        if data is None or data.get("node") is None:
            return None
        return NodeHandle(str(data["node"]))

    async def configuration(self) -> AuthorityConfiguration:
        data = await self._get_json("/configuration")
        return AuthorityConfiguration(
            initial_max_fanout=int(data["initial_max_fanout"]),
            decay_factor=int(data["decay_factor"]),
        )

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        allow_not_found: bool = False,
    ) -> Any:
        """GET with retry logic"""
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.get(path, params=params)
                if allow_not_found and response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                last_error = e
                if not self._is_retryable_error(status_code):
                    raise UpstreamUnavailableError(
                        f"HTTP error {status_code} for {path}", operation=path
                    ) from e
                await self._backoff(attempt, f"HTTP {status_code}", path)

            except httpx.TimeoutException as e:
                last_error = e
                await self._backoff(attempt, "Timeout", path)

            except httpx.RequestError as e:
                last_error = e
                await self._backoff(attempt, "Request error", path)

            except ValueError as e:
                raise UpstreamUnavailableError(
                    f"Invalid JSON from {path}: {e}", operation=path
                ) from e

        raise UpstreamUnavailableError(
            f"Failed after {self.max_retries + 1} attempts: {last_error}", operation=path
        ) from last_error

    async def _backoff(self, attempt: int, reason: str, path: str) -> None:
        if attempt >= self.max_retries:
            return
        backoff = self._calculate_backoff(attempt)
        logger.warning(
            f"{reason} on attempt {attempt + 1}/{self.max_retries + 1}: {path}. "
            f"Retrying in {backoff}s..."
        )
        await asyncio.sleep(backoff)

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff delay"""
        backoff = min(self.initial_backoff * (self.backoff_multiplier**attempt), self.max_backoff)
        return float(backoff)

    def _is_retryable_error(self, status_code: int) -> bool:
        """Determine if HTTP error is retryable"""
        return status_code in [429, 500, 502, 503, 504]


def _segment(value: str) -> str:
    """Percent-encode one path segment, including any slashes."""
    return quote(value, safe="")


def create_http_source(
    base_url: str, timeout: float = 30.0, max_retries: int = 3
) -> HttpHierarchySource:
    """Factory function to create an HTTP hierarchy source"""
    return HttpHierarchySource(base_url=base_url, timeout=timeout, max_retries=max_retries)
