import logging
import sys
from pathlib import Path
from typing import Any, Optional

from contextkeeper.protocol.bus import EventBus
from contextkeeper.protocol.events import EventTypes

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger: stderr always, plus a file when asked."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path), mode="w")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


class EventLogger:
    """
    Turns orchestration events into log lines.

    Subscribes to the bus; nothing else calls it.
    """

    def __init__(self, bus: EventBus, logger_name: str = "contextkeeper.events"):
        self._bus = bus
        self._logger = logging.getLogger(logger_name)

    async def start(self) -> None:
        """Subscribe to every event type the orchestrator emits."""
        await self._bus.subscribe(EventTypes.STATE_CHANGED, self._log_state)
        await self._bus.subscribe(EventTypes.BUDGET_CHECKED, self._log_budget)
        await self._bus.subscribe(EventTypes.CONTEXT_REDUCED, self._log_reduction)
        await self._bus.subscribe(EventTypes.KNOWLEDGE_EXTRACTED, self._log_knowledge)
        await self._bus.subscribe(EventTypes.REDUCTION_FAILED, self._log_failure)
        await self._bus.subscribe(EventTypes.INTENT_CLASSIFIED, self._log_intent)
        await self._bus.subscribe(EventTypes.PLAN_CREATED, self._log_plan)
        await self._bus.subscribe(EventTypes.PLANNING_FAILED, self._log_failure)
        await self._bus.subscribe(EventTypes.TOOL_STEP_COMPLETE, self._log_step)
        await self._bus.subscribe(EventTypes.TOOL_STEP_FAILED, self._log_step)
        await self._bus.subscribe(EventTypes.REPLY_GENERATED, self._log_reply)

    # --- Handlers ---

    async def _log_state(self, data: Any):
        self._logger.debug("🔄 STATE: %s -> %s", data.previous, data.current)

    async def _log_budget(self, data: Any):
        self._logger.info(
            "📊 BUDGET: %d/%d tokens (%.1f%%)",
            data.tokens_used,
            data.tokens_limit,
            data.percentage_used * 100,
        )

    async def _log_reduction(self, data: Any):
        self._logger.info(
            "🧠 CONTEXT: %d -> %d messages, %d -> %d tokens (%s)",
            data.messages_before,
            data.messages_after,
            data.tokens_before,
            data.tokens_after,
            data.source,
        )

    async def _log_knowledge(self, data: Any):
        self._logger.info("📚 KNOWLEDGE: %d entries extracted", len(data))

    async def _log_failure(self, data: Any):
        msg = data.get("error", str(data)) if isinstance(data, dict) else str(data)
        self._logger.warning("⚠️  FALLBACK: %s", msg)

    async def _log_intent(self, data: Any):
        self._logger.info(
            "🎯 INTENT: %s (confidence %.2f, targets %s)",
            data.type.value,
            data.confidence,
            list(data.targets),
        )

    async def _log_plan(self, data: Any):
        self._logger.info(
            "🗺️  PLAN: %d step(s), confidence %.2f", len(data.steps), data.confidence
        )

    async def _log_step(self, data: Any):
        icon = "✅" if data.success else "❌"
        self._logger.info("%s TOOL: %s finished", icon, data.tool_name)

    async def _log_reply(self, data: Any):
        self._logger.info("🤖 MODEL: %s", data.reply)
