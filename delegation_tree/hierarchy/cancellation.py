import asyncio
from typing import Optional

from .errors import QueryCancelledError


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a running query.

    The engine checks the token between levels and before every child or
    balance read.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            message = "Query cancelled"
            if self.reason:
                message = f"{message}: {self.reason}"
            raise QueryCancelledError(message)
