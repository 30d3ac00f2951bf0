"""Periodic SLA refresh of open tickets."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .models import Ticket
from .service import TicketService

logger = logging.getLogger(__name__)


class SlaSweeper:
    """Run :meth:`TicketService.sweep` on a fixed interval until stopped."""

    def __init__(self, service: TicketService, *, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._service = service
        self._interval = interval_seconds
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> list[Ticket]:
        return await self._service.sweep()

    async def run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.sweep_once()
            except Exception:  # pragma: no cover - keep the loop alive on store outages
                logger.exception("SLA sweep failed")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name="sla-sweep")
        logger.info("SLA sweep started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
            logger.info("SLA sweep stopped")
