from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from datetime import datetime
from typing import Callable, Optional

from . import service
from .clock import aware
from .schemas import TodoState
from .store import StateStore, get_store

log = logging.getLogger(__name__)


def is_auto_reset_enabled() -> bool:
    """
    Feature flag:
      AUTO_RESET_ENABLED=0 -> no background ticker (resets still apply on GET /todo/state)
    """
    v = os.getenv("AUTO_RESET_ENABLED", "1").strip().lower()
    return v not in ("0", "false", "no", "")


def get_interval_seconds() -> float:
    try:
        return max(1.0, float(os.getenv("AUTO_RESET_INTERVAL_SECONDS", "60")))
    except ValueError:
        return 60.0


def tick_once(store_factory: Callable[[], StateStore] = get_store) -> TodoState:
    return store_factory().update(service.tick)


def next_delay(state: TodoState, interval: float, now: Optional[datetime] = None) -> float:
    """Seconds until the next tick: the regular interval, or sooner when a buff expires first."""
    expiry = service.next_buff_expiry(state, now)
    if expiry is None:
        return interval
    until = (expiry - aware(now)).total_seconds()
    return max(1.0, min(interval, until))


class AutoResetTicker:
    """
    Runs ``service.tick`` against the store every ``interval`` seconds until stopped.
    A buff expiring sooner than that pulls the next tick forward.
    """

    def __init__(self, interval: float, store_factory: Callable[[], StateStore] = get_store):
        self.interval = interval
        self.store_factory = store_factory
        self._task: Optional[asyncio.Task] = None

    async def _run(self) -> None:
        delay = self.interval
        while True:
            await asyncio.sleep(delay)
            try:
                state = await asyncio.to_thread(tick_once, self.store_factory)
            except Exception:
                # keep ticking; the next run re-reads the latest state
                log.exception("auto reset tick failed")
                delay = self.interval
                continue
            delay = next_delay(state, self.interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
            log.info("auto reset ticker started (every %.0fs)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
