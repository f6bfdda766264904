from typing import Awaitable, Callable, Optional

from app.core.exceptions import JobCancelledError

CancelCheck = Callable[[], Awaitable[bool]]


class CancellationToken:
    """
    Signals that an in-flight job should stop. `cancel()` trips it locally;
    the optional check lets the runner ask the ledger whether someone else
    asked for cancellation (or removed the row).
    """

    def __init__(self, check: Optional[CancelCheck] = None):
        self._check = check
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Execução cancelada.") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def is_cancelled(self) -> bool:
        if self._cancelled:
            return True
        if self._check is not None and await self._check():
            self.cancel()
        return self._cancelled

    async def raise_if_cancelled(self) -> None:
        if await self.is_cancelled():
            raise JobCancelledError(self.reason or "Execução cancelada.")
