#!/usr/bin/env python3
"""
Execution Planner
=================
Turns an intent and a ranked tool list into an ordered list of candidate
tool invocations with an overall confidence.

    confidence = intent.confidence * availability * max(0.5, 1 - 0.1 * steps)

``availability`` is 0.9 when any tool was offered, else 0.5. Longer plans
have more ways to be wrong, so confidence decays with the step count.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from contextkeeper.agent.context.message import Message
from contextkeeper.exceptions import PlanningError
from contextkeeper.tools.base import ToolCategory

from .intent import Intent, IntentType
from .tool_selector import DEFAULT_NAME_HINTS, NameHints, infer_category

FILE_TARGET = re.compile(
    r"\.(?:js|ts|tsx|jsx|py|java|cpp|go|rs|rust|html|css|json|yaml|yml|md|toml|sh)$", re.I
)
WEB_TARGET = re.compile(r"http|www|web|site|api|documentation", re.I)
ERROR_TEXT = re.compile(r"error|bug|exception|traceback", re.I)
ERROR_LOCATIONS = (
    re.compile(r'File "([^"]+)", line \d+'),
    re.compile(r"(?:at|in)\s+([^\s(]+:\d+:\d+|[^\s:(]+\.[A-Za-z]{1,6})\b"),
)

DEFAULT_REPRODUCE_COMMANDS: Dict[str, str] = {
    ".py": "python {target}",
    ".js": "node {target}",
    ".sh": "bash {target}",
}

OUTCOME_PREFIXES: Dict[IntentType, str] = {
    IntentType.CODE_CHANGE: "Code will be modified",
    IntentType.QUERY: "Information will be retrieved",
    IntentType.DEBUG: "Issues will be identified",
    IntentType.REFACTOR: "Code structure will be improved",
    IntentType.RESEARCH: "Knowledge will be gathered",
    IntentType.OTHER: "Task will be completed",
}


@dataclass(frozen=True)
class ExecutionStep:
    tool: Any
    parameters: Dict[str, Any] = field(default_factory=dict)
    expected_outcome: str = ""
    priority: int = 5

    @property
    def tool_name(self) -> str:
        return self.tool.name

    def to_dict(self) -> Dict:
        return {
            "tool": self.tool_name,
            "parameters": dict(self.parameters),
            "expected_outcome": self.expected_outcome,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class ExecutionPlan:
    """Transient, built and consumed within a single turn."""

    intent: Intent
    selected_tools: Tuple[Any, ...]
    steps: Tuple[ExecutionStep, ...]
    confidence: float
    predicted_outcome: str

    def to_dict(self) -> Dict:
        return {
            "intent": self.intent.to_dict(),
            "selected_tools": [tool.name for tool in self.selected_tools],
            "steps": [step.to_dict() for step in self.steps],
            "confidence": round(self.confidence, 3),
            "predicted_outcome": self.predicted_outcome,
        }


StepGenerator = Callable[[Intent, Sequence[Any], Sequence[Message]], List[ExecutionStep]]


class ExecutionPlanner:
    """One step generator per intent type; a default step when tools exist but none fit."""

    def __init__(
        self,
        reproduce_commands: Optional[Dict[str, str]] = None,
        availability_factor: float = 0.9,
        no_tools_factor: float = 0.5,
        step_penalty: float = 0.1,
        min_step_factor: float = 0.5,
        default_priority: int = 5,
        name_hints: NameHints = DEFAULT_NAME_HINTS,
    ):
        self.reproduce_commands = dict(
            DEFAULT_REPRODUCE_COMMANDS if reproduce_commands is None else reproduce_commands
        )
        self.availability_factor = availability_factor
        self.no_tools_factor = no_tools_factor
        self.step_penalty = step_penalty
        self.min_step_factor = min_step_factor
        self.default_priority = default_priority
        self.name_hints = tuple(name_hints)
        self.generators: Dict[IntentType, StepGenerator] = {
            IntentType.CODE_CHANGE: self._code_change_steps,
            IntentType.QUERY: self._query_steps,
            IntentType.DEBUG: self._debug_steps,
            IntentType.REFACTOR: self._refactor_steps,
            IntentType.RESEARCH: self._research_steps,
            IntentType.OTHER: self._general_steps,
        }
        self.logger = logging.getLogger(__name__)

    def plan(
        self,
        intent: Intent,
        ranked_tools: Sequence[Any],
        context: Sequence[Message] = (),
    ) -> ExecutionPlan:
        """
        Build a plan. ``ranked_tools`` may hold tools or ToolPredictions,
        best first.
        """
        tools = tuple(getattr(item, "tool", item) for item in ranked_tools)
        generator = self.generators.get(intent.type, self._general_steps)
        try:
            steps = generator(intent, tools, context)
        except Exception as e:
            raise PlanningError(
                f"Step generation failed for {intent.type.value}: {e}", original_error=e
            ) from e

        if not steps and tools:
            steps = [
                ExecutionStep(
                    tool=tools[0],
                    expected_outcome="Default step for general processing",
                    priority=self.default_priority,
                )
            ]
        steps = sorted(steps, key=lambda s: s.priority, reverse=True)

        plan = ExecutionPlan(
            intent=intent,
            selected_tools=tools,
            steps=tuple(steps),
            confidence=self._confidence(intent, tools, steps),
            predicted_outcome=self._predict_outcome(intent, steps),
        )
        self.logger.debug(
            "Planned %d step(s) for %s intent (confidence %.2f)",
            len(plan.steps),
            intent.type.value,
            plan.confidence,
        )
        return plan

    def _confidence(
        self, intent: Intent, tools: Sequence[Any], steps: Sequence[ExecutionStep]
    ) -> float:
        confidence = intent.confidence
        confidence *= self.availability_factor if tools else self.no_tools_factor
        confidence *= max(self.min_step_factor, 1.0 - self.step_penalty * len(steps))
        return min(confidence, 1.0)

    def _predict_outcome(self, intent: Intent, steps: Sequence[ExecutionStep]) -> str:
        prefix = OUTCOME_PREFIXES.get(intent.type, "Operation will be performed")
        names = list(dict.fromkeys(step.tool_name for step in steps))
        tools_used = ", ".join(names) if names else "no"
        expected = intent.expected_outcome or "Task completed successfully"
        return f"{prefix} using {tools_used} tools. Expected result: {expected}"

    # --- Step generators ---

    def _code_change_steps(self, intent, tools, context) -> List[ExecutionStep]:
        steps = []
        file_target = _first_file_target(intent)
        read_tool = self._first_of(tools, ToolCategory.READ)
        if read_tool is not None and file_target:
            steps.append(
                ExecutionStep(
                    tool=read_tool,
                    parameters={"path": file_target},
                    expected_outcome=f"File contents of {file_target} will be read",
                    priority=9,
                )
            )
        edit_tool = self._first_of(tools, ToolCategory.EDIT)
        if edit_tool is not None and intent.targets:
            target = file_target or intent.targets[0]
            steps.append(
                ExecutionStep(
                    tool=edit_tool,
                    # the snippets are filled in once the file has been read
                    parameters={"path": target, "old_string": "", "new_string": ""},
                    expected_outcome=f"File {target} will be modified",
                    priority=10,
                )
            )
        return steps

    def _query_steps(self, intent, tools, context) -> List[ExecutionStep]:
        steps = []
        if any(WEB_TARGET.search(t) for t in intent.targets):
            web_tool = self._first_of(tools, ToolCategory.WEB_SEARCH)
            if web_tool is not None:
                steps.append(
                    ExecutionStep(
                        tool=web_tool,
                        parameters={"query": _search_terms(intent) or "search query"},
                        expected_outcome="Web search results will be retrieved",
                        priority=9,
                    )
                )

        search_tool = self._first_of(tools, ToolCategory.SEARCH)
        read_tool = self._first_of(tools, ToolCategory.READ)
        if search_tool is not None:
            steps.append(
                ExecutionStep(
                    tool=search_tool,
                    parameters={"pattern": _search_pattern(intent), "path": "."},
                    expected_outcome="Code search results will be retrieved",
                    priority=8,
                )
            )
        elif read_tool is not None:
            steps.append(
                ExecutionStep(
                    tool=read_tool,
                    parameters={"path": _first_file_target(intent) or "README.md"},
                    expected_outcome="File contents will be retrieved",
                    priority=7,
                )
            )
        return steps

    def _debug_steps(self, intent, tools, context) -> List[ExecutionStep]:
        steps = []
        error_file = _error_location(context)
        read_tool = self._first_of(tools, ToolCategory.READ)
        if error_file and read_tool is not None:
            steps.append(
                ExecutionStep(
                    tool=read_tool,
                    parameters={"path": error_file},
                    expected_outcome=f"Source file {error_file} will be examined",
                    priority=10,
                )
            )

        shell_tool = self._first_of(tools, ToolCategory.SHELL)
        command = self._reproduce_command(intent)
        if shell_tool is not None and command:
            target = _first_file_target(intent)
            steps.append(
                ExecutionStep(
                    tool=shell_tool,
                    parameters={"command": command},
                    expected_outcome=f"File {target} will be executed to reproduce the error",
                    priority=9,
                )
            )
        return steps

    def _refactor_steps(self, intent, tools, context) -> List[ExecutionStep]:
        if not intent.targets:
            return []
        target = _first_file_target(intent) or intent.targets[0]
        steps = []
        read_tool = self._first_of(tools, ToolCategory.READ)
        if read_tool is not None:
            steps.append(
                ExecutionStep(
                    tool=read_tool,
                    parameters={"path": target},
                    expected_outcome="Current code structure will be analyzed",
                    priority=10,
                )
            )
        edit_tool = self._first_of(tools, ToolCategory.EDIT)
        if edit_tool is not None:
            steps.append(
                ExecutionStep(
                    tool=edit_tool,
                    parameters={"path": target, "old_string": "", "new_string": ""},
                    expected_outcome="Code will be refactored",
                    priority=9,
                )
            )
        return steps

    def _research_steps(self, intent, tools, context) -> List[ExecutionStep]:
        web_tool = self._first_of(tools, ToolCategory.WEB_SEARCH)
        if web_tool is not None:
            return [
                ExecutionStep(
                    tool=web_tool,
                    parameters={"query": _search_terms(intent) or "research topic"},
                    expected_outcome="Research results will be gathered",
                    priority=10,
                )
            ]
        read_tool = self._first_of(tools, ToolCategory.READ)
        if read_tool is not None:
            return [
                ExecutionStep(
                    tool=read_tool,
                    parameters={"path": "README.md"},
                    expected_outcome="Documentation will be reviewed",
                    priority=8,
                )
            ]
        return []

    def _general_steps(self, intent, tools, context) -> List[ExecutionStep]:
        if not tools:
            return []
        return [
            ExecutionStep(
                tool=tools[0],
                expected_outcome="The requested action will be performed",
                priority=self.default_priority,
            )
        ]

    def _first_of(self, tools: Sequence[Any], category: ToolCategory) -> Optional[Any]:
        for tool in tools:
            if infer_category(tool, self.name_hints) is category:
                return tool
        return None

    def _reproduce_command(self, intent: Intent) -> Optional[str]:
        target = _first_file_target(intent)
        if not target:
            return None
        template = self.reproduce_commands.get(PurePosixPath(target).suffix.lower())
        return template.format(target=target) if template else None


def _first_file_target(intent: Intent) -> Optional[str]:
    for target in intent.targets:
        if FILE_TARGET.search(target):
            return target
    return None


def _search_terms(intent: Intent) -> str:
    return " ".join(intent.targets[:3])


def _search_pattern(intent: Intent) -> str:
    terms = [t for t in intent.targets if not FILE_TARGET.search(t)][:3]
    terms = terms or list(intent.targets[:3]) or [intent.type.value]
    return "|".join(re.escape(term) for term in terms)


def _error_location(context: Sequence[Message]) -> Optional[str]:
    for msg in context:
        text = msg.text
        if not ERROR_TEXT.search(text):
            continue
        for pattern in ERROR_LOCATIONS:
            match = pattern.search(text)
            if match:
                return match.group(1)
    return None
