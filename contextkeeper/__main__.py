#!/usr/bin/env python3
"""
contextkeeper command line
==========================

    python -m contextkeeper plan "fix the crash in app.py" [--history FILE]
    python -m contextkeeper budget transcript.json
    python -m contextkeeper reduce transcript.json [--aggressive] [--output FILE]
    python -m contextkeeper chat [--reply-model NAME] [--monitor]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from contextkeeper.agent.context import ContextManager, Message, ReductionPolicy
from contextkeeper.agent.core import Orchestrator
from contextkeeper.agent.planning import ExecutionPlanner, IntentClassifier, ToolSelector
from contextkeeper.agent.providers import OllamaReplyClient
from contextkeeper.config import ContextSettings
from contextkeeper.exceptions import ContextKeeperError
from contextkeeper.protocol import EventBus
from contextkeeper.tools.defaults import build_default_registry
from contextkeeper.utils import EventLogger, load_transcript, save_transcript, setup_logging

console = Console()
logger = logging.getLogger("contextkeeper")


def _load_history(path: Optional[str]) -> List[Message]:
    return load_transcript(path) if path else []


# --- Commands ---


async def cmd_plan(args, settings: ContextSettings) -> int:
    history = _load_history(args.history)
    registry = build_default_registry(Path(args.workdir))
    tools = await registry.list_tools()

    intent = IntentClassifier().classify(args.text, history)
    selector = ToolSelector(top_k=settings.top_k_tools)
    ranked = selector.rank(intent, history, tools)
    planner = ExecutionPlanner(name_hints=selector.name_hints)
    plan = planner.plan(intent, ranked[: settings.top_k_tools], history)

    console.print(
        Panel(
            f"[bold]{intent.type.value}[/] (confidence {intent.confidence:.2f})\n"
            f"targets: {', '.join(intent.targets) or '-'}\n"
            f"expected: {intent.expected_outcome or '-'}",
            title="Intent",
            box=box.ROUNDED,
        )
    )

    tools_table = Table(title="Tool ranking", box=box.SIMPLE)
    tools_table.add_column("Tool", style="cyan")
    tools_table.add_column("Score", justify="right")
    tools_table.add_column("Fit", justify="right")
    tools_table.add_column("Context", justify="right")
    tools_table.add_column("Reasoning")
    for prediction in ranked:
        tools_table.add_row(
            prediction.name,
            f"{prediction.effectiveness:.2f}",
            f"{prediction.intent_fit:.2f}",
            f"{prediction.context_relevance:.2f}",
            prediction.reasoning,
        )
    console.print(tools_table)

    steps_table = Table(title="Plan", box=box.SIMPLE)
    steps_table.add_column("Priority", justify="right")
    steps_table.add_column("Tool", style="cyan")
    steps_table.add_column("Parameters")
    steps_table.add_column("Expected outcome")
    for step in plan.steps:
        steps_table.add_row(
            str(step.priority), step.tool_name, str(dict(step.parameters)), step.expected_outcome
        )
    console.print(steps_table)

    gate = settings.plan_confidence_gate
    verdict = "execute" if plan.confidence > gate else "reply only"
    console.print(
        f"confidence [bold]{plan.confidence:.2f}[/] (gate {gate:.2f}, {verdict})\n"
        f"{plan.predicted_outcome}"
    )
    return 0


async def cmd_budget(args, settings: ContextSettings) -> int:
    history = load_transcript(args.file)
    manager = ContextManager(settings)
    stats = manager.payload_statistics(history)

    table = Table(title=f"Budget for {settings.model}", box=box.SIMPLE, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("messages", str(stats["message_count"]))
    table.add_row("tokens used", str(stats["tokens_used"]))
    table.add_row("token limit", str(stats["tokens_limit"]))
    table.add_row("usage", f"{stats['percentage_used']:.2%}")
    table.add_row("compression ratio", f"{stats['estimated_compression_ratio']:.2f}")
    table.add_row("should reduce", str(manager.should_reduce(history)))
    table.add_row("will need reduction", str(manager.will_need_reduction(history)))
    console.print(table)
    return 0


async def cmd_reduce(args, settings: ContextSettings) -> int:
    history = load_transcript(args.file)
    manager = ContextManager(settings)
    policy = ReductionPolicy.aggressive() if args.aggressive else manager.policy
    result = manager.reduce_context(history, policy=policy, source="cli")
    report = result.report

    console.print(
        f"[bold]{report.messages_before}[/] -> [bold]{report.messages_after}[/] messages, "
        f"{report.tokens_before} -> {report.tokens_after} tokens "
        f"(strategies: {', '.join(policy.enabled_strategies) or 'none'})"
    )
    for msg in result.messages:
        console.print(f"[cyan]{msg.role.value}[/]: {msg.text}")

    if result.knowledge:
        table = Table(title="Extracted knowledge", box=box.SIMPLE)
        table.add_column("Tags", style="cyan")
        table.add_column("Content")
        for entry in result.knowledge:
            table.add_row(", ".join(entry.tags), entry.content)
        console.print(table)

    if args.output:
        save_transcript(result.messages, args.output)
        console.print(f"Reduced transcript written to {args.output}")
    return 0


def chat_settings(args, settings: ContextSettings) -> ContextSettings:
    """
    Settings for an interactive session. Without an explicit --model the
    budget follows the model that writes the replies.
    """
    reply_model = args.reply_model or settings.reply_model
    updates = {"reply_model": reply_model}
    if not args.model:
        updates["model"] = reply_model
    return settings.model_copy(update=updates)


async def cmd_chat(args, settings: ContextSettings) -> int:
    settings = chat_settings(args, settings)
    bus = EventBus()
    await EventLogger(bus).start()

    reply_client = OllamaReplyClient(model_name=settings.reply_model, host=settings.ollama_host)
    orchestrator = Orchestrator(
        registry=build_default_registry(Path(args.workdir)),
        reply_client=reply_client,
        settings=settings,
        bus=bus,
        gate_on_complexity=args.gate,
        history=_load_history(args.history),
    )
    if args.monitor:
        orchestrator.start_monitor()

    console.print("[bold cyan]contextkeeper chat[/] (/quit to exit, /stats for budget)")
    try:
        while True:
            try:
                text = await asyncio.to_thread(console.input, "[bold green]> [/]")
            except EOFError:
                break
            text = text.strip()
            if not text:
                continue
            if text in ("/quit", "/exit"):
                break
            if text == "/stats":
                stats = orchestrator.manager.payload_statistics(orchestrator.history)
                console.print(stats)
                continue

            try:
                turn = await orchestrator.handle_turn(text)
            except ContextKeeperError as e:
                console.print(f"[red]🚫 {e}[/]")
                continue

            for outcome in turn.steps:
                icon = "✅" if outcome.success else "❌"
                console.print(f"{icon} {outcome.step.tool_name}", style="dim")
            console.print(Panel(turn.reply, box=box.ROUNDED, border_style="cyan"))
    finally:
        await orchestrator.stop_monitor()
        if args.save:
            save_transcript(orchestrator.history, args.save)
    return 0


COMMANDS = {
    "plan": cmd_plan,
    "budget": cmd_budget,
    "reduce": cmd_reduce,
    "chat": cmd_chat,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contextkeeper",
        description="Context budget management and predictive tool planning",
    )
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--model", help="Model used to resolve the token limit")
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Classify a request and show the tool plan")
    plan.add_argument("text")
    plan.add_argument("--history", help="JSON transcript used as context")
    plan.add_argument("--workdir", default=".", help="Working directory for tools")

    budget = sub.add_parser("budget", help="Show token budget usage for a transcript")
    budget.add_argument("file")

    reduce = sub.add_parser("reduce", help="Reduce a transcript and extract knowledge")
    reduce.add_argument("file")
    reduce.add_argument("--aggressive", action="store_true")
    reduce.add_argument("--output", help="Write the reduced transcript here")

    chat = sub.add_parser("chat", help="Interactive session against Ollama")
    chat.add_argument("--history", help="JSON transcript to resume from")
    chat.add_argument("--reply-model", help="Ollama model that writes replies")
    chat.add_argument("--save", help="Write the transcript here on exit")
    chat.add_argument("--workdir", default=".", help="Working directory for tools")
    chat.add_argument("--gate", action="store_true", help="Only plan for complex requests")
    chat.add_argument("--monitor", action="store_true", help="Run the background token monitor")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        overrides = {}
        if args.log_level:
            overrides["log_level"] = args.log_level
        if args.model:
            overrides["model"] = args.model
        settings = ContextSettings(**overrides)
    except (ContextKeeperError, ValidationError) as e:
        console.print(f"[red]❌ Configuration Error: {e}[/]")
        return 1

    setup_logging(settings.log_level, args.log_file)
    logger.debug("Running command %s with model %s", args.command, settings.model)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except ContextKeeperError as e:
        console.print(f"[red]❌ {e}[/]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[contextkeeper] Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
