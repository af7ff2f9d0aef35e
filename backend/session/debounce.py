from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

import config

T = TypeVar("T")


class ViewportDebouncer(Generic[T]):
    """
    Collapse a burst of viewport changes into one call with the latest value.

    Each schedule() cancels the pending call and restarts the delay. Must be used from
    a running event loop.
    """

    def __init__(
        self,
        callback: Callable[[T], Awaitable[object]],
        *,
        delay_s: float | None = None,
    ) -> None:
        self.callback = callback
        self.delay_s = config.debounce_s() if delay_s is None else float(delay_s)
        self._pending: asyncio.Task | None = None

    @property
    def pending(self) -> asyncio.Task | None:
        return self._pending

    def schedule(self, value: T) -> asyncio.Task:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._fire(value))
        return self._pending

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _fire(self, value: T) -> object:
        await asyncio.sleep(self.delay_s)
        # Past the delay the call is no longer cancellable here; a newer viewport only
        # makes its response stale, which the loader drops.
        if self._pending is asyncio.current_task():
            self._pending = None
        return await self.callback(value)
