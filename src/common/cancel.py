from __future__ import annotations

import asyncio
from typing import Any, Awaitable


class CancelToken:
    """Cooperative cancellation handle for one in-flight turn.

    `cancel()` flips the flag and cancels the task started by `run()`, so a
    coroutine blocked on the transport is interrupted as well.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._task: asyncio.Task | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise asyncio.CancelledError()
        self._task = asyncio.ensure_future(awaitable)
        try:
            return await self._task
        finally:
            self._task = None
