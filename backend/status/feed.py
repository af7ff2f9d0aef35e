from __future__ import annotations

import time
from typing import Callable

import config


class StatusFeed:
    """
    User-visible status ticker.

    Duplicate messages are ignored. Every addition restarts the lifespan timer; once it
    runs out the whole feed is cleared at once.
    """

    def __init__(
        self,
        *,
        lifespan_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.lifespan_s = config.status_lifespan_s() if lifespan_s is None else float(lifespan_s)
        self._clock = clock
        self._messages: list[str] = []
        self._last_added: float | None = None

    def add(self, message: str) -> None:
        self._expire()
        if message not in self._messages:
            self._messages.append(message)
        self._last_added = self._clock()

    def messages(self) -> list[str]:
        self._expire()
        return list(self._messages)

    def _expire(self) -> None:
        if self._last_added is None:
            return
        if self._clock() - self._last_added >= self.lifespan_s:
            self._messages = []
            self._last_added = None
