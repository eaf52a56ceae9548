"""Interactive RapidCLI shell."""

from __future__ import annotations

import logging
import threading
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from pydantic import ValidationError

from rapidcli.agent.model_client import ProviderError
from rapidcli.common import (
    AnsiColors,
    colored_print,
    preview,
)
from rapidcli.config import (
    apply_override,
    snapshot,
)
from rapidcli.core.cancellation import (
    CancellationToken,
    OperationCancelled,
)
from rapidcli.core.context import AppContext
from rapidcli.core.schema import AgentExecutionResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

HELP_TEXT = """\
Type an objective to run it through the tools and the agent, or use a command:
  /help                     show this help
  /exit                     leave the shell
  /reset                    start a new session
  /history                  show the messages of this session
  /config                   show the current configuration
  /config set <key> <value> change a setting, e.g. /config set agent.max_iterations 4
  /save <name>              save this session under <name>
  /load <name>              switch to a saved session
  /sessions                 list saved sessions
  /agent <task>             run the agent directly, skipping tool orchestration
  /chat <message>           plain chat with the model, no tools
  /tools (/mcp)             list registered tools and their availability
  /reload                   re-read the tool registry
Commands can be shortened to any unique prefix. Ctrl+C cancels the running turn."""


# ---------------------------------------------------------------------------
# Input & cancellation
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    if hasattr(signal, "siginterrupt"):
        signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def run_cancellable(work: Callable[[CancellationToken], T]) -> Tuple[Optional[T], bool]:
    """
    Run *work* in a worker thread; Ctrl+C in the meantime cancels its token.

    Returns ``(result, cancelled)``.  Exceptions other than cancellation are re-raised here.
    """
    token = CancellationToken()
    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["value"] = work(token)
        except OperationCancelled:
            outcome["cancelled"] = True
        except Exception as exc:  # pylint: disable=broad-except
            outcome["error"] = exc

    worker = threading.Thread(target=target, name="rapidcli-turn", daemon=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(0.1)
        except KeyboardInterrupt:
            if not token.cancelled:
                token.cancel()
                colored_print("Cancelling...", AnsiColors.GREY)

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value"), token.cancelled or "cancelled" in outcome


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def render_agent_result(result: AgentExecutionResult) -> None:
    for invocation in result.tool_invocations:
        status = "ERROR" if invocation.is_error else "OK"
        color = AnsiColors.RED if invocation.is_error else AnsiColors.GREEN
        colored_print(f"  [{status}] {invocation.tool_name}: {preview(invocation.output)}", color)
    color = AnsiColors.YELLOW if result.completed else AnsiColors.RED
    colored_print(result.final_response, color)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def cmd_help(ctx: AppContext, args: List[str]) -> None:  # pylint: disable=unused-argument
    colored_print(HELP_TEXT, AnsiColors.CYAN)


def cmd_reset(ctx: AppContext, args: List[str]) -> None:  # pylint: disable=unused-argument
    session = ctx.chat.reset()
    colored_print(f"Started new session {session.id}.", AnsiColors.GREEN)


def cmd_history(ctx: AppContext, args: List[str]) -> None:  # pylint: disable=unused-argument
    messages = ctx.chat.history()
    if not messages:
        colored_print("No messages yet.", AnsiColors.GREY)
        return
    for message in messages:
        label = message.name or message.role
        colored_print(f"[{label}] {message.content}", AnsiColors.BLUE)


def cmd_config(ctx: AppContext, args: List[str]) -> None:
    if args and args[0].lower() == "set":
        if len(args) < 3:
            colored_print("Usage: /config set <key> <value>", AnsiColors.RED)
            return
        key, value = args[1], " ".join(args[2:])
        try:
            coerced = apply_override(ctx.settings, key, value)
        except KeyError:
            colored_print(f"Unknown setting '{key}'.", AnsiColors.RED)
            return
        except ValidationError:
            colored_print(f"Invalid value for '{key}': {value}", AnsiColors.RED)
            return
        colored_print(f"{key} = {coerced}", AnsiColors.GREEN)
        return

    for key, value in snapshot(ctx.settings).items():
        colored_print(f"{key:<28} {value}", AnsiColors.CYAN)


def cmd_save(ctx: AppContext, args: List[str]) -> None:
    if not args:
        colored_print("Usage: /save <name>", AnsiColors.RED)
        return
    try:
        session_id = ctx.chat.save_snapshot(" ".join(args))
    except ValueError:
        colored_print("Invalid session name.", AnsiColors.RED)
        return
    colored_print(f"Session saved as '{session_id}'.", AnsiColors.GREEN)


def cmd_load(ctx: AppContext, args: List[str]) -> None:
    if not args:
        colored_print("Usage: /load <name>", AnsiColors.RED)
        return
    try:
        found = ctx.chat.load_session(" ".join(args))
    except (ValueError, OSError):
        logger.exception("Failed to load session")
        colored_print("That session could not be read; see logs for details.", AnsiColors.RED)
        return
    if not found:
        colored_print(f"Session '{' '.join(args)}' not found.", AnsiColors.RED)
        return
    colored_print(
        f"Loaded session {ctx.chat.session.id} ({len(ctx.chat.history())} messages).",
        AnsiColors.GREEN,
    )


def cmd_sessions(ctx: AppContext, args: List[str]) -> None:  # pylint: disable=unused-argument
    summaries = ctx.store.list_sessions()
    if not summaries:
        colored_print("No saved sessions.", AnsiColors.GREY)
        return
    for summary in summaries:
        colored_print(
            f"{summary.id:<40} {summary.updated_at:%Y-%m-%d %H:%M}  "
            f"{summary.message_count} messages, {summary.tool_count} tools",
            AnsiColors.CYAN,
        )


def cmd_agent(ctx: AppContext, args: List[str]) -> None:
    if not ctx.settings.AGENT_ENABLED:
        colored_print("The agent is disabled in the current configuration.", AnsiColors.YELLOW)
        return
    if not args:
        colored_print("Usage: /agent <task>", AnsiColors.RED)
        return
    objective = " ".join(args)
    result, cancelled = run_cancellable(lambda token: ctx.assistant.run_agent(objective, token))
    if cancelled or result is None:
        colored_print("Operation cancelled.", AnsiColors.YELLOW)
        return
    render_agent_result(result)


def cmd_chat(ctx: AppContext, args: List[str]) -> None:
    if not args:
        colored_print("Usage: /chat <message>", AnsiColors.RED)
        return
    message = " ".join(args)

    def work(token: CancellationToken) -> str:
        if not ctx.settings.STREAM:
            answer = ctx.chat.reply(message, token)
            colored_print(answer, AnsiColors.YELLOW)
            return answer
        parts = []
        for fragment in ctx.chat.stream_reply(message, token):
            parts.append(fragment)
            colored_print(fragment, AnsiColors.YELLOW, end="", flush=True)
        print()
        return "".join(parts)

    try:
        _, cancelled = run_cancellable(work)
    except ProviderError as exc:
        colored_print(str(exc), AnsiColors.RED)
        return
    if cancelled:
        colored_print("Operation cancelled.", AnsiColors.YELLOW)


def cmd_tools(ctx: AppContext, args: List[str]) -> None:  # pylint: disable=unused-argument
    ctx.orchestrator.initialize()
    tools = ctx.orchestrator.registered_tools()
    if not tools:
        colored_print(
            f"No tools registered (registry: {ctx.registry.registry_path}).", AnsiColors.GREY
        )
        return
    for descriptor in tools:
        state = "available" if descriptor.is_available else "unavailable"
        color = AnsiColors.GREEN if descriptor.is_available else AnsiColors.RED
        tasks = ", ".join(descriptor.configuration.tasks) or "-"
        colored_print(
            f"{descriptor.display_name:<24} {state:<12} tasks: {tasks}  ({descriptor.availability.detail})",
            color,
        )


def cmd_reload(ctx: AppContext, args: List[str]) -> None:
    ctx.registry.reload()
    colored_print(f"Reloaded {len(ctx.registry.tools)} tools.", AnsiColors.GREEN)
    cmd_tools(ctx, args)


COMMANDS: Dict[str, Callable[[AppContext, List[str]], None]] = {
    "help": cmd_help,
    "reset": cmd_reset,
    "history": cmd_history,
    "config": cmd_config,
    "save": cmd_save,
    "load": cmd_load,
    "sessions": cmd_sessions,
    "agent": cmd_agent,
    "chat": cmd_chat,
    "tools": cmd_tools,
    "mcp": cmd_tools,
    "reload": cmd_reload,
}
EXIT_COMMANDS = {"exit", "quit"}


def resolve_command(name: str) -> Optional[str]:
    """Return the command *name* abbreviates, or None if it is unknown or ambiguous."""
    name = name.lower()
    known = list(COMMANDS) + sorted(EXIT_COMMANDS)
    if name in known:
        return name
    matches = [c for c in known if c.startswith(name)]
    return matches[0] if len(matches) == 1 else None


# ---------------------------------------------------------------------------
# Objectives
# ---------------------------------------------------------------------------
def handle_objective(ctx: AppContext, objective: str) -> None:
    outcome, cancelled = run_cancellable(
        lambda token: ctx.assistant.handle_objective(objective, token)
    )
    if outcome is None:
        if cancelled:
            colored_print("Operation cancelled.", AnsiColors.YELLOW)
        return

    for thought in outcome.thoughts:
        colored_print(thought, AnsiColors.GREY)
    orchestration = outcome.orchestration
    if orchestration is not None and orchestration.execution_result is not None:
        execution = orchestration.execution_result
        name = orchestration.descriptor.display_name if orchestration.descriptor else "tool"
        colored_print(
            f"  [{'OK' if execution.success else 'ERROR'}] {name} ({execution.duration:.2f}s)",
            AnsiColors.MAGENTA,
        )
    if outcome.agent_result is not None:
        render_agent_result(outcome.agent_result)
    else:
        colored_print(outcome.response_text, AnsiColors.YELLOW)


def run_cli(ctx: AppContext) -> None:
    """Run the interactive shell until the user exits."""
    session = ctx.chat.initialize_session()
    colored_print(
        f"\nRapidCLI shell - session {session.id}. Type /help for commands, /exit to quit.",
        AnsiColors.GREEN,
    )
    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break
        if not user_msg:
            continue

        if not user_msg.startswith("/"):
            handle_objective(ctx, user_msg)
            continue

        parts = user_msg[1:].split()
        if not parts:
            colored_print("Type a command after '/'. Type /help for the list.", AnsiColors.RED)
            continue
        name, args = parts[0], parts[1:]
        command = resolve_command(name)
        if command is None:
            colored_print(f"Unknown command '/{name}'. Type /help for the list.", AnsiColors.RED)
            continue
        if command in EXIT_COMMANDS:
            break
        try:
            COMMANDS[command](ctx, args)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Command /%s failed", command)
            colored_print(f"/{command} failed; see logs for details.", AnsiColors.RED)
