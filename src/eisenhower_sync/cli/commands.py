# src/eisenhower_sync/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import cast

from ..core.errors import InvalidImport
from ..core.state import AppState
from ..core.timeutil import utc_now
from ..notifications.dispatch import ReminderDispatcher, run_reminder_loop
from ..notifications.notifiers import ConsoleNotifier
from ..notifications.scheduler import schedule_next
from ..storage.migrator import migrate_records
from ..sync.transfer import merge_imported, parse_imported_tasks, serialize_tasks_for_export
from ..tasks.normalize import create_task, mark_completed
from ..tasks.task_models import NotificationFrequency, TaskRecord

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple command registry used by the CLI (/help, /status, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            return await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  {name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _local_tasks(state: AppState) -> list[TaskRecord]:
    return state.migrator.load_from_store() or []


def _find_task(tasks: list[TaskRecord], ref: str) -> TaskRecord | None:
    exact = [t for t in tasks if t.id == ref]
    if exact:
        return exact[0]
    prefixed = [t for t in tasks if t.id.startswith(ref)]
    return prefixed[0] if len(prefixed) == 1 else None


def _format_task(task: TaskRecord) -> str:
    mark = "x" if task.is_completed else " "
    due = f" due {task.due_date}" if task.due_date else ""
    return f"[{mark}] {task.quadrant.value} {task.title or 'Untitled task'} ({task.id[:8]}){due}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    tasks = _local_tasks(state)
    deleted = sum(1 for t in tasks if t.is_deleted)
    completed = sum(1 for t in tasks if t.is_completed and not t.is_deleted)
    active = len(tasks) - deleted - completed

    settings = state.settings
    user_id = getattr(settings, "user_id", None)
    sync = f"ON (user={user_id})" if state.repository.syncing else "OFF"
    reminders = "ON" if state.preferences.delivery_enabled else "OFF"
    tz = state.preferences.timezone or getattr(settings, "timezone", "UTC")
    return (
        "Status:\n"
        f"  Tasks: {len(tasks)} (active {active}, completed {completed}, deleted {deleted})\n"
        f"  Sync: {sync}\n"
        f"  Outbox: {len(state.outbox.list_pending())} pending\n"
        f"  Device: {state.device_id}\n"
        f"  Store: {getattr(settings, 'store_path', '?')}\n"
        f"  Timezone: {tz}\n"
        f"  Reminders: {reminders}"
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    list       -> open tasks
    list all   -> include completed tasks
    """
    show_all = bool(args) and args[0].lower() == "all"
    tasks = [t for t in _local_tasks(state) if not t.is_deleted]
    if not show_all:
        tasks = [t for t in tasks if not t.is_completed]
    if not tasks:
        return "No tasks."
    return "\n".join(_format_task(t) for t in tasks)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    add <title> [--urgent] [--important] [--due <instant>] [--freq low|medium|high]
    """
    urgent = important = False
    due: str | None = None
    freq: NotificationFrequency | None = None
    words: list[str] = []

    it = iter(args)
    for arg in it:
        flag = arg.lower()
        if flag in ("--urgent", "-u"):
            urgent = True
        elif flag in ("--important", "-i"):
            important = True
        elif flag == "--due":
            due = next(it, None)
        elif flag == "--freq":
            freq = NotificationFrequency.parse(next(it, None))
            if freq is None:
                return "Usage: --freq low|medium|high"
        else:
            words.append(arg)

    title = " ".join(words).strip()
    if not title:
        return "Usage: add <title> [--urgent] [--important] [--due <instant>] [--freq low|medium|high]"

    fields: dict[str, str] = {}
    if due:
        fields["dueDate"] = due
    if freq is not None:
        fields["notificationFrequency"] = freq.value

    task = create_task(title, urgent=urgent, important=important, device_id=state.device_id, **fields)
    await state.repository.save([*_local_tasks(state), task])
    return f"Added {task.id[:8]} to {task.quadrant.value}: {task.title}"


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: done <task id or unique prefix>"

    tasks = _local_tasks(state)
    task = _find_task([t for t in tasks if not t.is_deleted], args[0])
    if task is None:
        return f"No single task matches {args[0]!r}."
    if task.is_completed:
        return f"Task {task.id[:8]} is already completed."

    updated = mark_completed(task)
    await state.repository.save([updated if t.id == task.id else t for t in tasks])
    return f"Completed {task.id[:8]}: {task.title}"


def cmd_due(state: AppState, args: list[str]) -> str:
    plans = schedule_next(
        _local_tasks(state),
        state.preferences,
        utc_now(),
        state.ledger,
        default_zone=state.zone,
    )
    if not plans:
        return "Nothing scheduled."
    plans.sort(key=lambda p: p.fire_at)
    lines = ["Planned notifications:"]
    for p in plans:
        lines.append(f"  {p.fire_at}  {p.type.value:<8} {p.message}")
    return "\n".join(lines)


def cmd_outbox(state: AppState, args: list[str]) -> str:
    """
    outbox        -> list pending remote writes
    outbox clear  -> drop them
    """
    if args and args[0].lower() == "clear":
        count = len(state.outbox.list_pending())
        state.outbox.clear()
        return f"Outbox cleared ({count} entries dropped)."

    entries = state.outbox.list_pending()
    if not entries:
        return "Outbox is empty."
    lines = [f"Outbox: {len(entries)} pending"]
    for e in entries:
        lines.append(f"  {e.created_at}  {e.type}  user={e.user_id}  tasks={len(e.tasks)}")
    return "\n".join(lines)


async def cmd_sync(state: AppState, args: list[str]) -> str:
    if not state.repository.syncing:
        return "Sync is OFF (set EISEN_USER_ID and EISEN_REMOTE_DIR)."
    flushed = await state.repository.flush_pending()
    tasks = await state.repository.load()
    return f"Synced: {len(tasks)} tasks, {flushed} queued snapshot(s) replayed."


def cmd_export(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: export <path>"
    path = Path(args[0]).expanduser()
    tasks = _local_tasks(state)
    try:
        path.write_text(serialize_tasks_for_export(tasks), "utf-8")
    except OSError as e:
        logger.warning("Export to %s failed: %s", path, e)
        return f"Export failed: {e}"
    return f"Exported {len(tasks)} tasks to {path}"


async def cmd_import(state: AppState, args: list[str]) -> str:
    """
    import <path>            -> merge: imported tasks win per id
    import <path> --replace  -> replace the whole local list
    """
    if not args:
        return "Usage: import <path> [--replace]"
    path = Path(args[0]).expanduser()
    replace = any(a.lower() == "--replace" for a in args[1:])

    try:
        text = path.read_text("utf-8")
    except OSError as e:
        return f"Cannot read {path}: {e}"

    try:
        raw, meta = parse_imported_tasks(text)
    except InvalidImport as e:
        logger.warning("Import of %s rejected: %s", path, e)
        return f"Import rejected: {e}"

    incoming = migrate_records(raw)
    existing = [] if replace else _local_tasks(state)
    merged = merge_imported(existing, incoming)
    await state.repository.save(merged)

    logger.info("Imported %d tasks from %s (export version %s)", len(incoming), path, meta.get("version"))
    mode = "replaced" if replace else "merged"
    return f"Imported {len(incoming)} tasks ({mode}). Total: {len(merged)}."


async def cmd_watch(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    if not state.preferences.delivery_enabled:
        return "Reminders are disabled (in-app and browser notifications are both off)."

    dispatcher = ReminderDispatcher(
        lambda: _local_tasks(state),
        ConsoleNotifier(),
        preferences=lambda: state.preferences,
        ledger=state.ledger,
        ledger_store=state.store,
        default_zone=state.zone,
    )
    if emit:
        emit("Watching reminders. Press Ctrl+C to stop.")

    await run_reminder_loop(
        dispatcher,
        interval_seconds=getattr(state.settings, "reminder_interval_seconds", 30.0),
    )
    return "Stopped."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show task/outbox counts and settings.")
registry.register("list", cmd_list, help_text="List tasks: list | list all.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: add <title> [--urgent] [--important] [--due ...].")
registry.register("done", cmd_done, help_text="Complete a task: done <id>.")
registry.register("due", cmd_due, help_text="Show notifications planned right now.")
registry.register("outbox", cmd_outbox, help_text="Pending remote writes: outbox | outbox clear.")
registry.register("sync", cmd_sync, help_text="Replay the outbox and merge with the remote replica.")
registry.register("export", cmd_export, help_text="Export tasks: export <path>.")
registry.register("import", cmd_import, help_text="Import tasks: import <path> [--replace].")
registry.register("watch", cmd_watch, help_text="Run the reminder loop until Ctrl+C.")
