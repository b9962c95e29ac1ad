"""
Atomic unit of work over MongoDB writes.

Each successful write registers the write that undoes it. If anything inside the
block raises, the registered compensations are replayed newest first and the
original exception propagates, so callers never observe a half-applied unit.
"""
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[Any]]


class UnitOfWork:
    def __init__(self, name: str):
        self.name = name
        self._compensations: list[tuple[str, Compensation]] = []
        self.committed = False
        self.rolled_back = False

    def on_rollback(self, label: str, action: Compensation) -> None:
        self._compensations.append((label, action))

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self._compensations.clear()
            self.committed = True
            return False
        logger.warning(f"Rolling back {self.name} after {exc_type.__name__}: {exc}")
        await self.rollback()
        return False

    async def rollback(self) -> None:
        while self._compensations:
            label, action = self._compensations.pop()
            try:
                await action()
            except Exception:
                # Keep undoing the earlier steps, the caller still gets the original error
                logger.exception(f"Compensation '{label}' failed during rollback of {self.name}")
        self.rolled_back = True
