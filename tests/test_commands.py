# tests/test_commands.py

from __future__ import annotations

import pytest

from deskboard.cli.commands import CommandRegistry, UsageError, resolve_id
from deskboard.cli.commands import registry as commands
from deskboard.core.state import WorkspaceState
from deskboard.modules.module_models import ModuleKind, ViewMode


def _run(state: WorkspaceState, line: str) -> str:
    reply = commands.handle(state, line)
    assert reply is not None
    return reply


def _only(state: WorkspaceState, kind: ModuleKind) -> str:
    [mid] = [m.id for m in (*state.modules.active(), *state.modules.minimized()) if m.kind is kind]
    return mid


def test_command_registry_routes_and_aliases(state: WorkspaceState) -> None:
    reg = CommandRegistry()
    seen: list[list[str]] = []

    def handler(state, args):
        seen.append(args)
        return "ok"

    reg.register("go", handler, "go somewhere", aliases=["g"])

    assert reg.handle(state, "/go a b") == "ok"
    assert reg.handle(state, "/G c") == "ok"
    assert seen == [["a", "b"], ["c"]]
    assert "/go - go somewhere" in reg.build_help()


def test_command_registry_unknown_and_non_command(state: WorkspaceState) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_resolve_id_prefixes() -> None:
    ids = ["abc123", "abd456", "xyz"]
    assert resolve_id(ids, "abc", "module") == "abc123"
    assert resolve_id(ids, "xyz", "module") == "xyz"
    with pytest.raises(UsageError, match="ambiguous"):
        resolve_id(ids, "ab", "module")
    with pytest.raises(UsageError, match="No module"):
        resolve_id(ids, "q", "module")


def test_module_commands_end_to_end(state: WorkspaceState) -> None:
    assert "Added note" in _run(state, "/add note")
    assert "Added clock" in _run(state, "/add clock 40 0")
    assert "only one clock" in _run(state, "/add clock")
    assert "Unknown kind" in _run(state, "/add toaster")

    note = _only(state, ModuleKind.NOTE)
    assert _run(state, f"/title {note[:6]} Shopping list") == "Title updated."
    assert _run(state, f"/content {note[:6]} eggs and milk") == "Content updated."
    assert "eggs and milk" in _run(state, f"/show {note[:6]}")
    assert "between 0 and 15" in _run(state, f"/theme {note[:6]} 99")
    assert "integer" in _run(state, f"/theme {note[:6]} blue")

    listing = _run(state, "/list")
    assert "Shopping list" in listing and "@40,0" in listing

    assert "has content" in _run(state, f"/del {note[:6]}")
    assert "Deleted" in _run(state, f"/del {note[:6]} force")
    assert state.modules.get(note) is None


def test_mode_switch_and_drag(state: WorkspaceState) -> None:
    _run(state, "/add note")
    _run(state, "/add planner")
    planner = _only(state, ModuleKind.PLANNER)

    assert "only available in structured view" in _run(state, f"/drag {planner[:6]} 0")
    assert _run(state, "/mode structured") == "Switched to structured view."
    assert state.view_mode is ViewMode.STRUCTURED
    assert _run(state, "/mode structured") == "Already in structured view."

    reply = _run(state, f"/drag {planner[:6]} 0")
    assert reply.startswith("Order: " + planner[:8])
    assert "rejected" in _run(state, f"/move {planner[:6]} 0 0 20 20")


def test_minimize_restore_commands(state: WorkspaceState) -> None:
    _run(state, "/add sticky_note")
    sticky = _only(state, ModuleKind.STICKY_NOTE)

    assert _run(state, f"/min {sticky[:6]}") == "Minimized."
    assert _run(state, f"/min {sticky[:6]}") == "Already minimized."
    assert "Minimized:" in _run(state, "/list")
    assert _run(state, f"/restore {sticky[:6]} 10 20") == "Restored."
    assert state.modules.get(sticky).free_layout.x == 10
    assert _run(state, f"/restore {sticky[:6]}") == "Already active."


def test_task_and_event_commands(state: WorkspaceState) -> None:
    _run(state, "/add task_list")
    todo = _only(state, ModuleKind.TASK_LIST)

    assert "added" in _run(state, f"/task add {todo[:6]} Pack bags")
    [parent] = state.tasks.all()
    assert "Subtask" in _run(state, f"/task sub {parent.id[:6]} Socks")
    [child] = [t for t in state.tasks.all() if t.parent_id == parent.id]

    tree = _run(state, f"/task list {todo[:6]}")
    assert "Pack bags" in tree and "    [ ]" in tree

    assert "saved" in _run(state, "/event add 2000-01-01 @08:00-09:00 Old meeting")
    [event] = state.events.user_events()
    assert event.start_time == "08:00" and event.end_time == "09:00"
    assert _run(state, f"/task link {child.id[:6]} {event.id}") == "Linked."

    assert _run(state, "/sweep") == "Deadline sweep completed 1 task(s)."
    assert state.tasks.get(child.id).done
    assert state.tasks.get(parent.id).done

    assert _run(state, f"/task undo {child.id[:6]}") == "Updated."
    assert not state.tasks.get(parent.id).done

    assert "Old meeting" in _run(state, "/event list")
    assert _run(state, f"/event notify {event.id}") == "Toggled."
    assert _run(state, f"/task del {parent.id[:6]}") == "Removed 2 task(s)."
    assert _run(state, f"/event del {event.id}") == "Deleted."
    assert "Usage" in _run(state, "/task")
