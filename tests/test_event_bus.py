import logging

import pytest

from contextkeeper.exceptions import EventBusError
from contextkeeper.protocol import EventBus, EventTypes, StateChange
from contextkeeper.utils.logger import EventLogger


class TestEventBus:
    """Test suite for event subscription and emission"""

    @pytest.mark.asyncio
    async def test_handlers_run_in_subscription_order(self):
        """Handlers run in the order they subscribed"""
        bus = EventBus()
        seen = []

        async def first(data):
            seen.append(("first", data))

        async def second(data):
            seen.append(("second", data))

        await bus.subscribe(EventTypes.PLAN_CREATED, first)
        await bus.subscribe(EventTypes.PLAN_CREATED, second)
        await bus.emit(EventTypes.PLAN_CREATED, "plan")

        assert seen == [("first", "plan"), ("second", "plan")]

    @pytest.mark.asyncio
    async def test_emit_without_subscribers(self):
        """Emitting with no subscribers is a no-op"""
        await EventBus().emit(EventTypes.REPLY_GENERATED, None)

    @pytest.mark.asyncio
    async def test_sync_handler_rejected(self):
        """Only coroutine handlers can subscribe"""
        with pytest.raises(EventBusError):
            await EventBus().subscribe(EventTypes.PLAN_CREATED, lambda data: None)

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, caplog):
        """A failing handler does not stop the others"""
        bus = EventBus()
        seen = []

        async def broken(data):
            raise RuntimeError("handler bug")

        async def healthy(data):
            seen.append(data)

        await bus.subscribe(EventTypes.TOOL_STEP_FAILED, broken)
        await bus.subscribe(EventTypes.TOOL_STEP_FAILED, healthy)
        with caplog.at_level(logging.ERROR, logger="EventBus"):
            await bus.emit(EventTypes.TOOL_STEP_FAILED, 1)

        assert seen == [1]
        assert "handler bug" in caplog.text

    @pytest.mark.asyncio
    async def test_unsubscribe_during_emit(self):
        """A handler removed during an emit does not run again"""
        bus = EventBus()
        seen = []

        async def second(data):
            seen.append("second")

        async def first(data):
            seen.append("first")
            await bus.unsubscribe(EventTypes.STATE_CHANGED, second)

        await bus.subscribe(EventTypes.STATE_CHANGED, first)
        await bus.subscribe(EventTypes.STATE_CHANGED, second)
        await bus.emit(EventTypes.STATE_CHANGED, None)
        await bus.emit(EventTypes.STATE_CHANGED, None)

        assert seen == ["first", "first"]

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_handler(self):
        """Removing an unknown handler is harmless"""

        async def handler(data):
            pass

        await EventBus().unsubscribe(EventTypes.PLAN_CREATED, handler)


class TestEventLogger:
    """Test suite for event logging"""

    @pytest.mark.asyncio
    async def test_logs_events(self, caplog):
        """The event logger writes one line per event"""
        bus = EventBus()
        await EventLogger(bus).start()

        with caplog.at_level(logging.DEBUG, logger="contextkeeper.events"):
            await bus.emit(EventTypes.STATE_CHANGED, StateChange("idle", "budget_check"))
            await bus.emit(EventTypes.PLANNING_FAILED, {"error": "classifier offline"})

        assert "idle -> budget_check" in caplog.text
        assert "classifier offline" in caplog.text
