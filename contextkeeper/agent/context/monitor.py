#!/usr/bin/env python3
"""
Token Monitor
=============
Optional background task that re-runs the budget check and reduction on a
fixed interval, independent of user turns.

Results are published on an asyncio.Queue as MonitorUpdate objects carrying
the snapshot they were computed from, so the consumer can discard an update
when its history has moved on in the meantime.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .manager import ContextManager, ReductionResult
from .message import Message

HistoryProvider = Callable[[], Sequence[Message]]


@dataclass
class MonitorUpdate:
    snapshot: Sequence[Message]
    result: ReductionResult


class TokenMonitor:
    """
    Periodic budget watcher with an explicit start/stop lifecycle.

    The monitor never touches the caller's list. It reads the current list
    through ``history_provider`` and publishes replacement lists.
    """

    def __init__(
        self,
        manager: ContextManager,
        history_provider: HistoryProvider,
        interval: Optional[float] = None,
        queue: Optional["asyncio.Queue[MonitorUpdate]"] = None,
    ):
        self.manager = manager
        self.history_provider = history_provider
        self.interval = interval if interval is not None else manager.settings.monitor_interval
        self.updates: "asyncio.Queue[MonitorUpdate]" = queue or asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop. Restarting an active monitor is a no-op."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="token-monitor")
        self.logger.info("Token monitor started (interval=%.1fs)", self.interval)

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Token monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.check_once()

    async def check_once(self) -> Optional[MonitorUpdate]:
        """
        Run one budget check. Publishes and returns an update only when a
        reduction actually happened.
        """
        snapshot = self.history_provider()
        try:
            result = self.manager.monitor_and_cleanup(snapshot, source="monitor")
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.logger.error("Background reduction failed: %s", e, exc_info=True)
            return None

        if not result.reduced:
            return None
        update = MonitorUpdate(snapshot=snapshot, result=result)
        await self.updates.put(update)
        return update

    def check_and_cleanup(
        self, messages: Sequence[Message], job_id: Optional[str] = None
    ) -> ReductionResult:
        """Synchronous one-shot check, outside the background loop."""
        return self.manager.monitor_and_cleanup(messages, job_id=job_id)

    def drain(self) -> List[MonitorUpdate]:
        """Pop every pending update without waiting."""
        pending = []
        while True:
            try:
                pending.append(self.updates.get_nowait())
            except asyncio.QueueEmpty:
                return pending
