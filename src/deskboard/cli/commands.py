# src/deskboard/cli/commands.py

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable

from ..core.errors import AttachmentIOFailure
from ..core.state import WorkspaceState
from ..events.event_models import CalendarEvent
from ..modules.module_models import GridPoint, ModuleKind, Rect, ViewMode
from ..modules.registry import DeleteOutcome, Mutation
from ..tasks.deadline_sweeper import sweep_linked_deadlines
from ..tasks.task_models import DropPosition
from .renderers import is_text_kind, renderer_for

CommandHandler = Callable[[WorkspaceState, list[str]], str]

logger = logging.getLogger(__name__)

TIME_RANGE = re.compile(r"^@(\d{2}:\d{2})(?:-(\d{2}:\d{2}))?$")


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

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

    def handle(self, state: WorkspaceState, line: str) -> str | None:
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
        return handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


class UsageError(Exception):
    pass


# ---- helpers ----


def resolve_id(candidates: Iterable[str], prefix: str, what: str) -> str:
    """Full id for a unique prefix. Raises UsageError otherwise."""
    ids = list(candidates)
    if prefix in ids:
        return prefix
    hits = [i for i in ids if i.startswith(prefix)]
    if len(hits) == 1:
        return hits[0]
    if not hits:
        raise UsageError(f"No {what} matches '{prefix}'.")
    raise UsageError(f"'{prefix}' is ambiguous ({len(hits)} {what}s match).")


def _module_id(state: WorkspaceState, prefix: str) -> str:
    ids = [m.id for m in (*state.modules.active(), *state.modules.minimized())]
    return resolve_id(ids, prefix, "module")


def _task_id(state: WorkspaceState, prefix: str) -> str:
    return resolve_id((t.id for t in state.tasks.all()), prefix, "task")


def _event_id(state: WorkspaceState, prefix: str) -> str:
    return resolve_id((e.id for e in state.events.all_events()), prefix, "event")


def _int(raw: str, name: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise UsageError(f"{name} must be an integer, got '{raw}'.") from None


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise UsageError(f"Usage: {usage}")


def _mutation_reply(m: Mutation, done: str, noop: str) -> str:
    if not m.applied:
        return noop
    if m.mirror_error is not None:
        return f"{done} (warning: other view not updated: {m.mirror_error})"
    return done


def _usage_errors(handler: CommandHandler) -> CommandHandler:
    def wrapped(state: WorkspaceState, args: list[str]) -> str:
        try:
            return handler(state, args)
        except UsageError as e:
            return str(e)
        except ValueError as e:
            logger.debug("Command rejected: %s", e)
            return f"Invalid input: {e}"

    wrapped.__name__ = handler.__name__
    wrapped.__doc__ = handler.__doc__
    return wrapped


# ---- workspace ----


def cmd_help(state: WorkspaceState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: WorkspaceState, args: list[str]) -> str:
    return (
        "Status:\n"
        f"  View mode: {state.modules.mode.value}\n"
        f"  Modules: {len(state.modules.active())} active, {len(state.modules.minimized())} minimized\n"
        f"  Tasks: {len(state.tasks.all())}\n"
        f"  Events: {len(state.events.user_events())} (+{len(state.events.all_events()) - len(state.events.user_events())} holidays)"
    )


@_usage_errors
def cmd_mode(state: WorkspaceState, args: list[str]) -> str:
    """
    /mode                    -> show current view mode
    /mode free|structured    -> switch
    """
    if not args:
        return f"View mode is {state.modules.mode.value}."
    try:
        target = ViewMode(args[0].lower())
    except ValueError:
        raise UsageError("Usage: /mode free|structured") from None
    m = state.modules.switch_view_mode(target)
    return _mutation_reply(m, f"Switched to {target.value} view.", f"Already in {target.value} view.")


@_usage_errors
def cmd_add(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 1, "/add <kind> [x y]   kinds: " + ", ".join(k.value for k in ModuleKind))
    try:
        kind = ModuleKind(args[0].lower())
    except ValueError:
        raise UsageError("Unknown kind. Kinds: " + ", ".join(k.value for k in ModuleKind)) from None
    drop = None
    if len(args) >= 3:
        drop = GridPoint(_int(args[1], "x"), _int(args[2], "y"))
    m = state.modules.create_module(kind, drop)
    if not m.applied or m.module is None:
        return f"Could not add {kind.value} (only one clock is allowed)."
    return _mutation_reply(m, f"Added {kind.value} {m.module.id[:8]}.", "")


def cmd_list(state: WorkspaceState, args: list[str]) -> str:
    structured = state.modules.mode is ViewMode.STRUCTURED
    lines = [f"Modules ({state.modules.mode.value} view):"]
    for m in state.modules.active():
        where = f"#{m.order_index}" if structured else (
            f"@{m.free_layout.x},{m.free_layout.y} {m.free_layout.w}x{m.free_layout.h}"
        )
        lines.append(f"  {m.id[:8]} {m.kind.value:<12} {where:<16} {m.title}")
    mins = state.modules.minimized()
    if mins:
        lines.append("Minimized:")
        for m in mins:
            lines.append(f"  {m.id[:8]} {m.kind.value:<12} {m.title}")
    if len(lines) == 1:
        lines.append("  (empty)")
    return "\n".join(lines)


@_usage_errors
def cmd_title(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 2, "/title <module> <text>")
    mid = _module_id(state, args[0])
    m = state.modules.update_shared_property(mid, title=" ".join(args[1:]))
    return _mutation_reply(m, "Title updated.", "Nothing changed.")


@_usage_errors
def cmd_theme(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 2, "/theme <module> <0-15>")
    mid = _module_id(state, args[0])
    m = state.modules.update_shared_property(mid, theme_index=_int(args[1], "theme"))
    return _mutation_reply(m, "Theme updated.", "Theme must be between 0 and 15.")


@_usage_errors
def cmd_content(state: WorkspaceState, args: list[str]) -> str:
    """Replace text content. Drawing/planner payloads cannot be typed in."""
    _need(args, 1, "/content <module> [text]")
    mid = _module_id(state, args[0])
    module = state.modules.get(mid)
    if module is None or not is_text_kind(module.kind):
        return "Only note and sticky note content can be edited here."

    results: list[Mutation] = []
    _content_sink(state, mid, results)(" ".join(args[1:]))
    return _mutation_reply(results[0], "Content updated.", "Nothing changed.")


def _content_sink(state: WorkspaceState, module_id: str, results: list[Mutation]) -> Callable[[str], None]:
    def on_change(new_content: str) -> None:
        results.append(state.modules.update_shared_property(module_id, content=new_content))

    return on_change


@_usage_errors
def cmd_show(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 1, "/show <module>")
    module = state.modules.get(_module_id(state, args[0]))
    if module is None:
        return "Module not found."
    header = f"{module.title} [{module.kind.value}, theme {module.theme_index}]"
    renderer = renderer_for(module.kind)
    if renderer is None:
        return header + "\n" + _render_tree(state, module.id)
    return header + "\n  " + renderer.render(module.content, _content_sink(state, module.id, []))


@_usage_errors
def cmd_min(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 1, "/min <module>")
    m = state.modules.minimize(_module_id(state, args[0]))
    return _mutation_reply(m, "Minimized.", "Already minimized.")


@_usage_errors
def cmd_restore(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 1, "/restore <module> [x y]")
    drop = None
    if len(args) >= 3:
        drop = GridPoint(_int(args[1], "x"), _int(args[2], "y"))
    m = state.modules.restore(_module_id(state, args[0]), drop)
    return _mutation_reply(m, "Restored.", "Already active.")


@_usage_errors
def cmd_del(state: WorkspaceState, args: list[str]) -> str:
    """
    /del <module>        -> delete, asks for confirmation when the module holds content
    /del <module> force  -> delete without asking
    """
    _need(args, 1, "/del <module> [force]")
    mid = _module_id(state, args[0])
    confirmed = len(args) > 1 and args[1].lower() in ("force", "yes", "y")
    outcome, m = state.modules.request_delete(mid, confirmed=confirmed)
    if outcome is DeleteOutcome.NEEDS_CONFIRMATION:
        return f"Module {mid[:8]} has content. Use /del {args[0]} force to delete it anyway."
    if outcome is DeleteOutcome.NOT_FOUND:
        return "Module not found."
    removed = len(m.removal.removed) if m.removal else 0
    return _mutation_reply(m, f"Deleted (tasks removed: {removed}).", "Nothing deleted.")


@_usage_errors
def cmd_drag(state: WorkspaceState, args: list[str]) -> str:
    """/drag <module> <offset>: structured view reorder by pointer offset in grid units."""
    _need(args, 2, "/drag <module> <offset>")
    mid = _module_id(state, args[0])
    try:
        offset = float(args[1])
    except ValueError:
        raise UsageError("offset must be a number.") from None
    m = state.modules.drag_commit(mid, offset)
    if not m.applied:
        return "Reorder is only available in structured view."
    order = " ".join(x.id[:8] for x in state.modules.active())
    return f"Order: {order}"


@_usage_errors
def cmd_move(state: WorkspaceState, args: list[str]) -> str:
    _need(args, 5, "/move <module> <x> <y> <w> <h>")
    mid = _module_id(state, args[0])
    rect = Rect(*(_int(a, n) for a, n in zip(args[1:5], ("x", "y", "w", "h"), strict=True)))
    m = state.modules.move_free(mid, rect)
    return _mutation_reply(m, "Moved.", "Move rejected (free view only, size above the minimum).")


# ---- tasks ----


def _render_tree(state: WorkspaceState, module_id: str) -> str:
    tree = state.tasks.tree_for_module(module_id)
    if not len(tree):
        return "  (no tasks)"
    lines = []
    for depth, task in tree.walk():
        mark = "x" if task.done else " "
        extra = f" ->{task.linked_event_id}" if task.linked_event_id else ""
        imgs = f" [{len(task.images)} img]" if task.images else ""
        lines.append(f"  {'  ' * depth}[{mark}] {task.id[:8]} {task.text}{extra}{imgs}")
    return "\n".join(lines)


@_usage_errors
def cmd_task(state: WorkspaceState, args: list[str]) -> str:
    """
    /task list <module>
    /task add <module> <text>
    /task sub <parent> <text>
    /task done|undo <task>
    /task edit <task> <text>
    /task color <task> <#hex>
    /task del <task>
    /task move <task> <module>
    /task drop <task> <target> before|after|inside
    /task link <task> <event|->
    /task img <task> <path>
    /task unimg <task> <image>
    /task cover <task> <image>
    """
    usage = (cmd_task.__doc__ or "").strip()
    if not args:
        return "Usage:\n" + usage
    sub, rest = args[0].lower(), args[1:]
    engine = state.tasks

    if sub == "list":
        _need(rest, 1, "/task list <module>")
        return _render_tree(state, _module_id(state, rest[0]))

    if sub == "add":
        _need(rest, 2, "/task add <module> <text>")
        task = engine.add_task(" ".join(rest[1:]), _module_id(state, rest[0]))
        return f"Task {task.id[:8]} added." if task else "Task not added."

    if sub == "sub":
        _need(rest, 2, "/task sub <parent> <text>")
        parent = engine.get(_task_id(state, rest[0]))
        if parent is None:
            return "Task not found."
        task = engine.add_task(" ".join(rest[1:]), parent.origin_module_id, parent.id)
        return f"Subtask {task.id[:8]} added." if task else "Subtask not added."

    if sub in ("done", "undo"):
        _need(rest, 1, f"/task {sub} <task>")
        ok = engine.set_done(_task_id(state, rest[0]), sub == "done")
        return "Updated." if ok else "Task not found."

    if sub == "edit":
        _need(rest, 2, "/task edit <task> <text>")
        task = engine.update_task(_task_id(state, rest[0]), text=" ".join(rest[1:]))
        return "Updated." if task else "Task not found."

    if sub == "color":
        _need(rest, 2, "/task color <task> <#hex>")
        task = engine.update_task(_task_id(state, rest[0]), color=rest[1])
        return "Updated." if task else "Task not found."

    if sub == "del":
        _need(rest, 1, "/task del <task>")
        removal = engine.delete_task(_task_id(state, rest[0]))
        msg = f"Removed {len(removal.removed)} task(s)."
        if removal.attachment_failures:
            msg += f" {len(removal.attachment_failures)} attachment(s) could not be deleted."
        return msg

    if sub == "move":
        _need(rest, 2, "/task move <task> <module>")
        ok = engine.move_task(_task_id(state, rest[0]), _module_id(state, rest[1]))
        return "Moved." if ok else "Task not found."

    if sub == "drop":
        _need(rest, 3, "/task drop <task> <target> before|after|inside")
        dragged = _task_id(state, rest[0])
        target = engine.get(_task_id(state, rest[1]))
        if target is None:
            return "Task not found."
        try:
            position = DropPosition(rest[2].lower())
        except ValueError:
            raise UsageError("position must be before, after or inside.") from None
        ok = engine.reorder_task(dragged, target.id, position, target.origin_module_id)
        return "Reordered." if ok else "Drop ignored."

    if sub == "link":
        _need(rest, 2, "/task link <task> <event|->")
        event_id = None if rest[1] == "-" else _event_id(state, rest[1])
        task = engine.update_task(_task_id(state, rest[0]), linked_event_id=event_id)
        return "Linked." if task and event_id else ("Unlinked." if task else "Task not found.")

    if sub == "img":
        _need(rest, 2, "/task img <task> <path>")
        res = engine.add_image(_task_id(state, rest[0]), " ".join(rest[1:]))
        if res is None:
            return "Task not found."
        if isinstance(res, AttachmentIOFailure):
            return f"Attach failed: {res}"
        return f"Image {res.id[:8]} attached{' (cover)' if res.is_cover else ''}."

    if sub in ("unimg", "cover"):
        _need(rest, 2, f"/task {sub} <task> <image>")
        tid = _task_id(state, rest[0])
        task = engine.get(tid)
        if task is None:
            return "Task not found."
        image_id = resolve_id((i.id for i in task.images), rest[1], "image")
        if sub == "cover":
            return "Cover set." if engine.set_cover_image(tid, image_id) else "Image not found."
        failure = engine.remove_image(tid, image_id)
        return f"Image removed (file not deleted: {failure.reason})." if failure else "Image removed."

    return "Usage:\n" + usage


# ---- events ----


@_usage_errors
def cmd_event(state: WorkspaceState, args: list[str]) -> str:
    """
    /event list
    /event add <YYYY-MM-DD> [@HH:MM[-HH:MM]] <title>
    /event notify <event>
    /event del <event>
    """
    usage = (cmd_event.__doc__ or "").strip()
    if not args:
        return "Usage:\n" + usage
    sub, rest = args[0].lower(), args[1:]
    book = state.events

    if sub == "list":
        events = book.all_events()
        if not events:
            return "No events."
        lines = ["Events:"]
        for e in sorted(events, key=lambda e: (e.date, e.start_time or "")):
            when = e.date[:10] + (f" {e.start_time}" if e.start_time else "")
            bell = " (notify)" if e.notify else ""
            lines.append(f"  {e.id[:12]:<12} {when:<16} {e.title}{bell}")
        return "\n".join(lines)

    if sub == "add":
        _need(rest, 2, "/event add <YYYY-MM-DD> [@HH:MM[-HH:MM]] <title>")
        date, words = rest[0], rest[1:]
        start = end = None
        m = TIME_RANGE.match(words[0])
        if m:
            start, end = m.group(1), m.group(2)
            words = words[1:]
        ev = book.save_event(
            CalendarEvent(
                id="",
                title=" ".join(words),
                date=date,
                start_time=start,
                end_time=end,
                is_all_day=start is None,
            )
        )
        return f"Event {ev.id} saved."

    if sub == "notify":
        _need(rest, 1, "/event notify <event>")
        return "Toggled." if book.toggle_notify(_event_id(state, rest[0])) else "Only user events can notify."

    if sub == "del":
        _need(rest, 1, "/event del <event>")
        return "Deleted." if book.delete_event(_event_id(state, rest[0])) else "Only user events can be deleted."

    return "Usage:\n" + usage


def cmd_sweep(state: WorkspaceState, args: list[str]) -> str:
    done = sweep_linked_deadlines(state.tasks, state.events)
    return f"Deadline sweep completed {len(done)} task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show view mode and counts.")
registry.register("mode", cmd_mode, help_text="Show or switch view mode: /mode free | /mode structured.")
registry.register("add", cmd_add, help_text="Add a module: /add <kind> [x y].")
registry.register("list", cmd_list, help_text="List modules of the current view.", aliases=["ls"])
registry.register("title", cmd_title, help_text="Rename a module: /title <module> <text>.")
registry.register("theme", cmd_theme, help_text="Set a module theme: /theme <module> <0-15>.")
registry.register("content", cmd_content, help_text="Replace module content: /content <module> <text>.")
registry.register("show", cmd_show, help_text="Show a module and its content: /show <module>.")
registry.register("min", cmd_min, help_text="Minimize a module: /min <module>.")
registry.register("restore", cmd_restore, help_text="Restore a minimized module: /restore <module> [x y].")
registry.register("del", cmd_del, help_text="Delete a module: /del <module> [force].")
registry.register("drag", cmd_drag, help_text="Structured reorder: /drag <module> <offset>.")
registry.register("move", cmd_move, help_text="Free layout: /move <module> <x> <y> <w> <h>.")
registry.register("task", cmd_task, help_text="Task tree: /task list|add|sub|done|undo|edit|del|move|drop|link|img|...")
registry.register("event", cmd_event, help_text="Calendar events: /event list|add|notify|del.")
registry.register("sweep", cmd_sweep, help_text="Complete tasks whose linked event is over.")
