import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from contextkeeper.agent.context.manager import ContextManager, ReductionResult
from contextkeeper.agent.context.message import Message
from contextkeeper.agent.context.monitor import TokenMonitor
from contextkeeper.agent.core.state_machine import OrchestratorState, StateMachine
from contextkeeper.agent.planning.intent import Intent, IntentClassifier
from contextkeeper.agent.planning.planner import ExecutionPlan, ExecutionPlanner, ExecutionStep
from contextkeeper.agent.planning.tool_selector import ToolSelector
from contextkeeper.agent.providers.base import ReplyClient
from contextkeeper.config.settings import ContextSettings
from contextkeeper.exceptions import ReplyGenerationError
from contextkeeper.protocol.bus import EventBus
from contextkeeper.protocol.events import EventTypes
from contextkeeper.protocol.objects import StateChange, StepReport
from contextkeeper.tools.base import ToolResult
from contextkeeper.tools.registry import ToolRegistry

AUGMENT_KEYWORDS = (
    "refactor", "debug", "optimize", "improve", "research",
    "analyze", "investigate", "understand", "find all",
    "multiple", "complex", "several", "pattern", "error",
    "fix", "issue", "problem", "solution", "strategy",
    "how to", "best way", "why does", "what is", "explain",
    "implement", "add feature", "add functionality", "create",
    "performance", "memory leak", "slow", "bottleneck",
    "security", "vulnerability", "secure", "attack", "safe",
    "architecture", "design", "structure",
    "compare", "difference", "between", "pros and cons",
    "review", "audit", "check", "verify", "ensure",
    "integrate", "connect", "combine", "merge", "link",
    "upgrade", "update", "migrate", "modernize",
    "test", "testing", "debugging", "troubleshoot",
)

MULTI_STEP_INDICATORS = (
    "first", "then", "next", "finally", "after that", "once you",
    "step by step", "and then", "followed by", "after",
    "1.", "2.", "3.", "one", "two", "three", "four", "five",
)

CODE_TERMS = (
    "function", "class", "method", "variable",
    "module", "package", "dependency", "library",
)


@dataclass
class StepOutcome:
    """What one plan step produced. ``error`` is set when the step raised."""

    step: ExecutionStep
    result: Optional[ToolResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.result is not None and self.result.success

    @property
    def output(self) -> str:
        if self.result is not None:
            return self.result.output
        return self.error or ""


@dataclass
class TurnResult:
    reply: str
    intent: Optional[Intent] = None
    plan: Optional[ExecutionPlan] = None
    steps: List[StepOutcome] = field(default_factory=list)
    reduction: Optional[ReductionResult] = None

    @property
    def executed(self) -> bool:
        return bool(self.steps)


class Orchestrator:
    """
    Runs one user turn through the pipeline:

        IDLE -> BUDGET_CHECK -> (REDUCE_CONTEXT) -> CLASSIFY -> SELECT_TOOLS
             -> PLAN -> (EXECUTE) -> GENERATE_REPLY -> IDLE

    The conversation history is owned here and only ever replaced by
    assignment; reductions and monitor updates hand back new lists.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        reply_client: ReplyClient,
        settings: Optional[ContextSettings] = None,
        bus: Optional[EventBus] = None,
        manager: Optional[ContextManager] = None,
        classifier: Optional[IntentClassifier] = None,
        selector: Optional[ToolSelector] = None,
        planner: Optional[ExecutionPlanner] = None,
        gate_on_complexity: bool = False,
        history: Sequence[Message] = (),
    ):
        self.settings = settings or ContextSettings()
        self.registry = registry
        self.reply_client = reply_client
        self.bus = bus
        self.manager = manager or ContextManager(self.settings)
        self.classifier = classifier or IntentClassifier()
        self.selector = selector or ToolSelector(top_k=self.settings.top_k_tools)
        self.planner = planner or ExecutionPlanner(name_hints=self.selector.name_hints)
        self.gate_on_complexity = gate_on_complexity
        self.history: List[Message] = list(history)

        self._state = StateMachine()
        self._monitor: Optional[TokenMonitor] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self._logger = logging.getLogger("Orchestrator")

    @property
    def state(self) -> OrchestratorState:
        return self._state.current

    # --- Turn pipeline ---

    async def handle_turn(self, user_text: str, job_id: Optional[str] = None) -> TurnResult:
        """
        Process one user message and return the reply with whatever the
        pipeline decided along the way.

        Raises:
            ReplyGenerationError: If the reply client fails. Every earlier
                stage degrades instead of raising.
        """
        self.apply_monitor_updates()
        self._cancel_event = asyncio.Event()
        self.history = self.history + [Message.user(user_text)]
        result = TurnResult(reply="")

        try:
            await self._set_state(OrchestratorState.BUDGET_CHECK)
            result.reduction = await self._check_budget(job_id)

            if not self.gate_on_complexity or self.should_augment(user_text):
                reply_context = await self._plan_and_execute(user_text, result)
            else:
                reply_context = self.history

            await self._set_state(OrchestratorState.GENERATE_REPLY)
            try:
                result.reply = await self.reply_client.generate(reply_context, user_text)
            except ReplyGenerationError:
                raise
            except Exception as e:
                raise ReplyGenerationError(
                    f"Reply generation failed: {e}", original_error=e
                ) from e

            self.history = self.history + [Message.model(result.reply)]
            await self._emit(EventTypes.REPLY_GENERATED, result)
            await self._set_state(OrchestratorState.IDLE)
            return result
        except Exception as e:
            self._logger.error("Turn failed: %s", e, exc_info=True)
            if self._state.can_transition(OrchestratorState.ERROR):
                await self._set_state(OrchestratorState.ERROR)
            await self._set_state(OrchestratorState.IDLE)
            raise
        finally:
            self._cancel_event = None

    async def _check_budget(self, job_id: Optional[str]) -> Optional[ReductionResult]:
        state = self.manager.usage(self.history)
        await self._emit(EventTypes.BUDGET_CHECKED, state)
        if not (
            self.manager.should_reduce(self.history)
            or self.manager.will_need_reduction(self.history)
        ):
            return None

        await self._set_state(OrchestratorState.REDUCE_CONTEXT)
        try:
            reduction = self.manager.reduce_context(self.history, job_id=job_id)
        except Exception as e:
            # Keep the unreduced history; the next turn tries again.
            self._logger.warning("Context reduction failed, keeping full history: %s", e)
            await self._emit(EventTypes.REDUCTION_FAILED, {"error": str(e)})
            return None

        if reduction.knowledge:
            await self._emit(EventTypes.KNOWLEDGE_EXTRACTED, reduction.knowledge)
        if reduction.reduced:
            self.history = reduction.messages
            await self._emit(EventTypes.CONTEXT_REDUCED, reduction.report)
        return reduction

    async def _plan_and_execute(self, user_text: str, result: TurnResult) -> List[Message]:
        """
        Classify, select, plan and maybe execute. Returns the message list the
        reply should be generated from.
        """
        try:
            intent, plan = await self._predict(user_text)
            context = self.manager.prepare_context(intent, self.history)
        except Exception as e:
            # Fallback path: any planning failure degrades to a plain reply
            # over the current history.
            self._logger.warning("Planning failed, replying without a plan: %s", e)
            await self._emit(EventTypes.PLANNING_FAILED, {"error": str(e)})
            return self.history

        result.intent = intent
        result.plan = plan

        if plan.confidence > self.settings.plan_confidence_gate and plan.steps:
            await self._set_state(OrchestratorState.EXECUTE)
            for step in plan.steps:
                outcome = await self._run_step(step)
                result.steps.append(outcome)
                tool_message = Message.tool(f"[{step.tool_name}] {outcome.output}")
                self.history = self.history + [tool_message]
                context.append(tool_message)
        else:
            self._logger.info(
                "Plan confidence %.2f below gate %.2f, not executing",
                plan.confidence,
                self.settings.plan_confidence_gate,
            )
        return context

    async def _predict(self, user_text: str):
        await self._set_state(OrchestratorState.CLASSIFY)
        intent = self.classifier.classify(user_text, self.history)
        await self._emit(EventTypes.INTENT_CLASSIFIED, intent)

        await self._set_state(OrchestratorState.SELECT_TOOLS)
        tools = await self.registry.list_tools()
        ranked = self.selector.select(intent, self.history, tools)

        await self._set_state(OrchestratorState.PLAN)
        plan = self.planner.plan(intent, ranked, self.history)
        await self._emit(EventTypes.PLAN_CREATED, plan)
        return intent, plan

    async def _run_step(self, step: ExecutionStep) -> StepOutcome:
        """Run a single step. Failures are recorded, never raised."""
        try:
            tool_result = await self.registry.execute_tool(
                step.tool_name, step.parameters, cancel_event=self._cancel_event
            )
            outcome = StepOutcome(step=step, result=tool_result)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._logger.warning("Step %s failed: %s", step.tool_name, e)
            outcome = StepOutcome(step=step, error=str(e))

        report = StepReport(
            tool_name=step.tool_name,
            priority=step.priority,
            success=outcome.success,
            output=outcome.result.output if outcome.result is not None else None,
            error=outcome.error,
        )
        event = EventTypes.TOOL_STEP_COMPLETE if outcome.success else EventTypes.TOOL_STEP_FAILED
        await self._emit(event, report)
        return outcome

    # --- Plan-only and gating ---

    async def predict(self, user_text: str) -> ExecutionPlan:
        """
        Classify, select and plan without executing or replying.
        Errors propagate to the caller.
        """
        try:
            _, plan = await self._predict(user_text)
            return plan
        finally:
            await self._set_state(OrchestratorState.IDLE)

    @staticmethod
    def should_augment(text: str) -> bool:
        """Complexity score of two or more means the request is worth planning for."""
        lowered = text.lower()
        score = sum(1 for keyword in AUGMENT_KEYWORDS if keyword in lowered)
        score += sum(1 for indicator in MULTI_STEP_INDICATORS if indicator in lowered)
        if len(lowered.split()) > 15:
            score += 1
        score += sum(1 for term in CODE_TERMS if term in lowered)
        return score >= 2

    def cancel(self) -> None:
        """Abort tool execution for the running turn, if any."""
        if self._cancel_event is not None:
            self._cancel_event.set()

    # --- Budget maintenance outside a turn ---

    def monitor_and_cleanup(self, job_id: Optional[str] = None) -> ReductionResult:
        """Run the budget-triggered cleanup on the current history now."""
        result = self.manager.monitor_and_cleanup(self.history, job_id=job_id)
        if result.reduced:
            self.history = result.messages
        return result

    def start_monitor(self, interval: Optional[float] = None) -> TokenMonitor:
        if self._monitor is None:
            self._monitor = TokenMonitor(self.manager, lambda: self.history, interval)
        self._monitor.start()
        return self._monitor

    async def stop_monitor(self) -> None:
        if self._monitor is not None:
            await self._monitor.stop()

    def apply_monitor_updates(self) -> int:
        """
        Swap in pending monitor results. An update computed from a list that
        is no longer current is dropped. Returns the number applied.
        """
        if self._monitor is None:
            return 0
        applied = 0
        for update in self._monitor.drain():
            if update.snapshot is self.history:
                self.history = update.result.messages
                applied += 1
            else:
                self._logger.debug("Dropping stale monitor update")
        return applied

    # --- Helpers ---

    async def _set_state(self, state: OrchestratorState) -> None:
        """Transition and announce it in one go."""
        previous = self._state.transition_to(state)
        await self._emit(EventTypes.STATE_CHANGED, StateChange(previous.value, state.value))

    async def _emit(self, event_type: EventTypes, data: Any = None) -> None:
        if self.bus is not None:
            await self.bus.emit(event_type, data)
