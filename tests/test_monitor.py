import asyncio

import pytest

from contextkeeper.agent.context.manager import ContextManager
from contextkeeper.agent.context.message import Message
from contextkeeper.agent.context.monitor import TokenMonitor
from contextkeeper.config.settings import ContextSettings


@pytest.fixture
def tight_manager():
    return ContextManager(
        ContextSettings(_env_file=None, fixed_token_threshold=10, monitor_interval=0.01)
    )


class TestTokenMonitor:
    """Background budget checks and the replacement lists they publish"""

    @pytest.mark.asyncio
    async def test_check_once_publishes_replacement(self, tight_manager, noisy_conversation):
        """A reduction that drops messages is queued with its snapshot"""
        monitor = TokenMonitor(tight_manager, lambda: noisy_conversation)
        update = await monitor.check_once()

        assert update is not None
        assert update.snapshot is noisy_conversation
        assert update.result.reduced is True
        assert len(update.result.messages) == len(noisy_conversation) - 1
        assert monitor.drain() == [update]
        assert monitor.drain() == []

    @pytest.mark.asyncio
    async def test_check_once_quiet_under_budget(self, settings):
        """Nothing is published while the history fits the budget"""
        history = [Message.user("hi")]
        monitor = TokenMonitor(ContextManager(settings), lambda: history)
        assert await monitor.check_once() is None
        assert monitor.updates.empty()

    @pytest.mark.asyncio
    async def test_unshrinkable_history_publishes_nothing(self, tight_manager):
        """Repeated checks on an over-budget list that cannot shrink stay silent"""
        history = [Message.user("x" * 200), Message.model("y" * 200)]
        monitor = TokenMonitor(tight_manager, lambda: history)

        for _ in range(5):
            assert await monitor.check_once() is None

        assert monitor.updates.empty()
        assert len(tight_manager.reduction_log) == 0

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, tight_manager, conversation, monkeypatch):
        """A failing cleanup is logged and yields no update"""

        def explode(*args, **kwargs):
            raise RuntimeError("reducer down")

        monkeypatch.setattr(tight_manager, "monitor_and_cleanup", explode)
        monitor = TokenMonitor(tight_manager, lambda: conversation)
        assert await monitor.check_once() is None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tight_manager, noisy_conversation):
        """The loop runs on its interval and stops cleanly"""
        monitor = TokenMonitor(tight_manager, lambda: noisy_conversation)
        assert monitor.interval == 0.01

        monitor.start()
        monitor.start()  # second start is a no-op
        assert monitor.running
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert not monitor.running
        assert not monitor.updates.empty()
        assert all(u.snapshot is noisy_conversation for u in monitor.drain())

    @pytest.mark.asyncio
    async def test_stop_without_start(self, settings):
        """Stopping a monitor that never started is harmless"""
        monitor = TokenMonitor(ContextManager(settings), list)
        await monitor.stop()
        assert not monitor.running

    def test_check_and_cleanup_is_synchronous(self, tight_manager, noisy_conversation):
        """The one-shot check reduces and extracts without the event loop"""
        monitor = TokenMonitor(tight_manager, lambda: noisy_conversation, interval=1.0)
        result = monitor.check_and_cleanup(noisy_conversation, job_id="sync")
        assert result.reduced is True
        assert result.knowledge
