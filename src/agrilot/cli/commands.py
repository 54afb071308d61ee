# src/agrilot/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import date
from typing import cast

from ..connectors.local_platform import LocalShareSheet
from ..core.errors import AgrilotError
from ..core.state import AppState
from ..services.export import ExportFormat, export_infrastructure, export_tasks
from ..services.records import set_task_status
from ..store.entities import TaskStatus
from ..views.calendar import build_calendar_marks, calendar_day, tasks_for_date
from ..views.dashboard import build_dashboard_stats
from ..views.lists import (
    InfrastructureSort,
    TaskSort,
    infrastructure_list,
    inspection_status,
    task_list,
)

CommandEmitter = Callable[[str], None]
CommandHandler4 = Callable[[AppState, list[str], str | None, str | None], str]
CommandHandler5 = Callable[
    [AppState, list[str], str | None, str | None, CommandEmitter | None], str
]
CommandHandler = CommandHandler4 | CommandHandler5

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
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
            nparams = 5

        try:
            if nparams >= 5:
                h5 = cast(CommandHandler5, handler)
                return h5(state, args, user_id, room_id, emit)

            h4 = cast(CommandHandler4, handler)
            return h4(state, args, user_id, room_id)
        except AgrilotError as e:
            logger.info("/%s failed: %s", name, e)
            return f"/{name} failed: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _day(value) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else "-"


def cmd_help(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
    emit: CommandEmitter | None = None,
) -> str:
    return registry.build_help()


def cmd_dashboard(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    store = state.store
    s = build_dashboard_stats(
        store.objects("Lot"),
        store.objects("Task"),
        store.objects("Treatment"),
        store.objects("HealthRecord"),
        now=store.now(),
    )
    return (
        "Dashboard:\n"
        f"  Lots: {s.total_lots} ({s.active_lots} active)\n"
        f"  Tasks: {s.total_tasks} ({s.pending_tasks} pending, {s.completed_tasks} completed)\n"
        f"  Treatments: {s.total_treatments} ({s.recent_treatments} in the last 7 days)\n"
        f"  Health records: {s.total_health_records} ({s.active_health_issues} under treatment)"
    )


def cmd_lots(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    lots = state.store.objects("Lot").sorted("name")
    if not lots:
        return "No lots yet."
    lines = [f"Lots ({len(lots)}):"]
    for lot in lots:
        lines.append(f"  {lot['name']} [{lot['status']}] {lot['area']:g} ha, {lot.get('soilType') or 'soil n/a'}")
    return "\n".join(lines)


def cmd_tasks(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /tasks                -> all tasks by due date
    /tasks priority       -> sorted by priority (also: status, category, dueDate)
    """
    sort = args[0] if args else TaskSort.DUE_DATE.value
    try:
        sort_by = TaskSort(sort)
    except ValueError:
        return f"Unknown sort: {sort}. Use one of: {', '.join(s.value for s in TaskSort)}."

    tasks = task_list(state.store.objects("Task"), sort_by=sort_by)
    if not tasks:
        return "No tasks."
    lines = [f"Tasks by {sort_by.value} ({len(tasks)}):"]
    for t in tasks:
        lines.append(
            f"  {_day(t['dueDate'])} [{t['priority']}/{t['status']}] {t['title']} ({t['id']})"
        )
    return "\n".join(lines)


def cmd_done(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    if not args:
        return "Usage: /done <task_id>"
    task_id = args[0]
    if state.store.object_for_primary_key("Task", task_id) is None:
        return f"No task with id {task_id}."
    set_task_status(state.store, task_id, TaskStatus.COMPLETED)
    return f"Task {task_id} completed."


def cmd_calendar(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /calendar             -> today
    /calendar 2024-05-01  -> given day
    """
    try:
        day = date.fromisoformat(args[0]) if args else state.store.now().date()
    except ValueError:
        return "Usage: /calendar [YYYY-MM-DD]"

    tasks = state.store.objects("Task").snapshot()
    marks = build_calendar_marks(tasks, day)
    busy = sorted(d for d, m in marks.items() if m.marked)

    lines = [f"Calendar {calendar_day(day)}:"]
    due = tasks_for_date(tasks, day)
    if due:
        for t in due:
            lines.append(f"  [{t['priority']}] {t['title']} ({t['status']})")
    else:
        lines.append("  No tasks due.")
    if busy:
        lines.append("Days with tasks: " + ", ".join(f"{d} ({len(marks[d].dots)})" for d in busy))
    return "\n".join(lines)


def cmd_infra(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /infra                -> by next inspection
    /infra status         -> by status (also: type, nextInspection)
    """
    sort = args[0] if args else InfrastructureSort.NEXT_INSPECTION.value
    try:
        sort_by = InfrastructureSort(sort)
    except ValueError:
        return f"Unknown sort: {sort}. Use one of: {', '.join(s.value for s in InfrastructureSort)}."

    items = infrastructure_list(state.store.objects("Infrastructure"), sort_by=sort_by)
    if not items:
        return "No infrastructure recorded."
    now = state.store.now()
    lines = [f"Infrastructure by {sort_by.value} ({len(items)}):"]
    for i in items:
        status = inspection_status(i["lastInspection"], i["nextInspection"], now)
        lines.append(f"  {i['type']} [{i['status']}] next {_day(i['nextInspection'])} ({status})")
    return "\n".join(lines)


def cmd_reminders(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    if state.reminders is None:
        return "Reminders are disabled."
    sets = [s for s in state.reminders.all_states() if s.times]
    if not sets:
        return "No pending reminders."
    lines = ["Pending reminders:"]
    for rs in sets:
        task = state.store.object_for_primary_key("Task", rs.task_id)
        title = task["title"] if task else rs.task_id
        times = ", ".join(t.strftime("%Y-%m-%d %H:%M") for t in rs.times)
        lines.append(f"  {title}: {times}")
    return "\n".join(lines)


def cmd_export(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
    emit: CommandEmitter | None = None,
) -> str:
    """
    /export tasks [excel|pdf]
    /export infra [excel|pdf]
    """
    if not args or args[0] not in ("tasks", "infra"):
        return "Usage: /export tasks|infra [excel]"
    try:
        fmt = ExportFormat(args[1]) if len(args) > 1 else ExportFormat.EXCEL
    except ValueError:
        return f"Unknown format: {args[1]}. Use excel."
    if fmt is ExportFormat.PDF:
        return "PDF export needs a PDF renderer; the console only supports excel."

    if emit:
        with contextlib.suppress(Exception):
            emit("[EXPORT] Writing workbook...")

    export_dir = state.settings.export_dir
    share_sheet = LocalShareSheet(export_dir)
    store = state.store
    common = dict(share_sheet=share_sheet, export_dir=export_dir / ".staging", now=store.now())
    if args[0] == "tasks":
        asyncio.run(export_tasks(task_list(store.objects("Task")), fmt, **common))
    else:
        asyncio.run(
            export_infrastructure(infrastructure_list(store.objects("Infrastructure")), fmt, **common)
        )
    return f"Exported to {share_sheet.shared[-1]}" if share_sheet.shared else "Nothing exported."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("dashboard", cmd_dashboard, help_text="Farm overview counters.", aliases=["home"])
registry.register("lots", cmd_lots, help_text="List lots.")
registry.register(
    "tasks", cmd_tasks, help_text="List tasks: /tasks [dueDate|priority|status|category]."
)
registry.register("done", cmd_done, help_text="Mark a task completed: /done <task_id>.")
registry.register("calendar", cmd_calendar, help_text="Tasks due on a day: /calendar [YYYY-MM-DD].")
registry.register(
    "infra", cmd_infra, help_text="List infrastructure: /infra [nextInspection|status|type]."
)
registry.register("reminders", cmd_reminders, help_text="Show pending task reminders.")
registry.register("export", cmd_export, help_text="Export to a workbook: /export tasks|infra [excel].")
