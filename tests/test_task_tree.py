# tests/test_task_tree.py

from __future__ import annotations

from dataclasses import replace

import pytest

from deskboard.core.errors import AttachmentIOFailure
from deskboard.storage.kv_store import KeyValueStore
from deskboard.tasks.task_models import DropPosition, Task
from deskboard.tasks.task_tree import TaskEngine, build_safe_tree, descendant_ids

from fakes import RecordingImageStore


def _ids(tasks) -> list[str]:
    return [t.id for t in tasks]


@pytest.fixture()
def engine() -> TaskEngine:
    return TaskEngine(images=RecordingImageStore())


def test_add_task_validation_and_color_inheritance(engine: TaskEngine) -> None:
    with pytest.raises(ValueError):
        engine.add_task("   ", "m1")

    parent = engine.add_task("groceries", "m1")
    assert parent is not None
    engine.update_task(parent.id, color="#ff0000")

    child = engine.add_task("milk", "m1", parent.id)
    assert child is not None
    assert child.parent_id == parent.id
    assert child.color == "#ff0000"

    # Parent in another module or unknown: nothing is created.
    assert engine.add_task("eggs", "m2", parent.id) is None
    assert engine.add_task("eggs", "m1", "nope") is None
    assert len(engine.all()) == 2


def test_completion_cascade_down_and_up(engine: TaskEngine) -> None:
    a = engine.add_task("A", "m1")
    b = engine.add_task("B", "m1", a.id)
    c = engine.add_task("C", "m1", a.id)
    d = engine.add_task("D", "m1", b.id)

    engine.set_done(d.id, True)
    assert engine.get(d.id).done
    assert engine.get(b.id).done  # only child done -> parent done
    assert not engine.get(a.id).done  # sibling C still open

    engine.set_done(c.id, True)
    assert engine.get(a.id).done

    engine.set_done(d.id, False)
    assert not engine.get(d.id).done
    assert not engine.get(b.id).done
    assert not engine.get(a.id).done
    assert engine.get(c.id).done

    engine.set_done(a.id, True)
    assert all(t.done for t in engine.all())

    engine.set_done(a.id, False)
    assert not any(t.done for t in engine.all())


def test_update_task_routes_done_through_cascade(engine: TaskEngine) -> None:
    a = engine.add_task("A", "m1")
    b = engine.add_task("B", "m1", a.id)

    engine.update_task(b.id, done=True, text="B!", origin_module_id="hacked")
    assert engine.get(a.id).done
    assert engine.get(b.id).text == "B!"
    assert engine.get(b.id).origin_module_id == "m1"


def test_cycles_terminate_and_render_as_roots() -> None:
    tasks = [
        Task(id="x", text="x", origin_module_id="m1", parent_id="y"),
        Task(id="y", text="y", origin_module_id="m1", parent_id="x"),
        Task(id="z", text="z", origin_module_id="m1"),
        Task(id="w", text="w", origin_module_id="m1", parent_id="w"),
    ]
    tree = build_safe_tree(tasks)
    assert len(tree) == 4
    assert [(depth, t.id) for depth, t in tree.walk()] == [(0, "x"), (0, "y"), (0, "z"), (0, "w")]
    assert descendant_ids(tasks, "x") == ["y"]

    engine = TaskEngine()
    engine.replace_all(tasks)
    assert engine.set_done("x", True)
    assert engine.get("y").done
    removal = engine.delete_task("x")
    assert sorted(removal.removed_ids) == ["x", "y"]


def test_safe_tree_demotes_bad_parents_without_mutating_input() -> None:
    tasks = [
        Task(id="p", text="p", origin_module_id="m1"),
        Task(id="c", text="c", origin_module_id="m1", parent_id="p"),
        Task(id="other", text="o", origin_module_id="m2", parent_id="p"),
        Task(id="orphan", text="o", origin_module_id="m1", parent_id="gone"),
        Task(id="p", text="dup", origin_module_id="m1"),
    ]
    tree = build_safe_tree(tasks)

    assert tree.parent_of("c") == "p"
    assert tree.parent_of("other") is None
    assert tree.parent_of("orphan") is None
    assert len(tree) == 4
    assert tasks[2].parent_id == "p"
    assert [t.text for _, t in tree.walk()].count("dup") == 0
    assert sorted((r.task_id, r.reason) for r in tree.repairs) == [
        ("orphan", "missing parent"),
        ("other", "parent in another module"),
    ]


def test_safe_tree_demotes_child_of_a_cycle_it_is_not_part_of() -> None:
    tasks = [
        Task(id="a", text="a", origin_module_id="m1", parent_id="b"),
        Task(id="b", text="b", origin_module_id="m1", parent_id="a"),
        Task(id="c", text="c", origin_module_id="m1", parent_id="a"),
    ]
    tree = build_safe_tree(tasks)

    assert tree.parent_of("c") is None
    assert [(depth, t.id) for depth, t in tree.walk()] == [(0, "a"), (0, "b"), (0, "c")]
    assert sorted((r.task_id, r.reason) for r in tree.repairs) == [
        ("a", "parent cycle"),
        ("b", "parent cycle"),
        ("c", "parent cycle"),
    ]


def test_safe_tree_demotes_when_an_ancestor_is_missing_or_foreign() -> None:
    tasks = [
        Task(id="a", text="a", origin_module_id="m1", parent_id="gone"),
        Task(id="c", text="c", origin_module_id="m1", parent_id="a"),
        Task(id="x", text="x", origin_module_id="m2"),
        Task(id="y", text="y", origin_module_id="m1", parent_id="x"),
        Task(id="z", text="z", origin_module_id="m1", parent_id="y"),
        Task(id="ok", text="ok", origin_module_id="m1"),
        Task(id="ok2", text="ok2", origin_module_id="m1", parent_id="ok"),
        Task(id="ok3", text="ok3", origin_module_id="m1", parent_id="ok2"),
    ]
    tree = build_safe_tree(tasks)

    assert tree.parent_of("c") is None
    assert tree.parent_of("z") is None
    assert tree.parent_of("ok3") == "ok2"
    assert sorted((r.task_id, r.reason) for r in tree.repairs) == [
        ("a", "missing parent"),
        ("c", "missing ancestor"),
        ("y", "parent in another module"),
        ("z", "ancestor in another module"),
    ]


def test_safe_tree_is_idempotent() -> None:
    tasks = [
        Task(id="a", text="a", origin_module_id="m1", parent_id="c"),
        Task(id="b", text="b", origin_module_id="m1", parent_id="a"),
        Task(id="c", text="c", origin_module_id="m1", parent_id="b"),
        Task(id="d", text="d", origin_module_id="m1", parent_id="e"),
        Task(id="e", text="e", origin_module_id="m1"),
        Task(id="f", text="f", origin_module_id="m2", parent_id="e"),
    ]
    first = build_safe_tree(tasks)
    effective = [replace(t, parent_id=first.parent_of(t.id)) for t in tasks]
    second = build_safe_tree(effective)

    assert [(d, t.id) for d, t in first.walk()] == [(d, t.id) for d, t in second.walk()]
    for t in tasks:
        assert first.parent_of(t.id) == second.parent_of(t.id)


def test_move_task_clears_parent_and_carries_subtree(engine: TaskEngine) -> None:
    a = engine.add_task("A", "m1")
    b = engine.add_task("B", "m1", a.id)
    c = engine.add_task("C", "m1", b.id)

    assert engine.move_task(b.id, "m2")
    assert engine.get(b.id).parent_id is None
    assert engine.get(b.id).origin_module_id == "m2"
    assert engine.get(c.id).origin_module_id == "m2"
    assert engine.get(c.id).parent_id == b.id
    assert engine.get(a.id).origin_module_id == "m1"

    assert not engine.move_task("missing", "m2")


def test_reorder_positions(engine: TaskEngine) -> None:
    p = engine.add_task("P", "m1")
    q = engine.add_task("Q", "m1")
    r = engine.add_task("R", "m1")

    assert engine.reorder_task(r.id, p.id, DropPosition.BEFORE, "m1")
    assert _ids(engine.all()) == [r.id, p.id, q.id]

    assert engine.reorder_task(r.id, q.id, "after", "m1")
    assert _ids(engine.all()) == [p.id, q.id, r.id]

    assert engine.reorder_task(q.id, p.id, DropPosition.INSIDE, "m1")
    assert engine.get(q.id).parent_id == p.id


def test_reorder_rejects_self_and_own_subtree(engine: TaskEngine) -> None:
    p = engine.add_task("P", "m1")
    q = engine.add_task("Q", "m1", p.id)
    before = [replace(t) for t in engine.all()]

    assert not engine.reorder_task(p.id, p.id, DropPosition.INSIDE, "m1")
    assert not engine.reorder_task(p.id, q.id, DropPosition.INSIDE, "m1")
    assert engine.all() == before


def test_reorder_into_other_module_moves_subtree(engine: TaskEngine) -> None:
    p = engine.add_task("P", "m1")
    q = engine.add_task("Q", "m1", p.id)
    t = engine.add_task("T", "m2")

    assert engine.reorder_task(p.id, t.id, DropPosition.AFTER, "m2")
    assert engine.get(p.id).origin_module_id == "m2"
    assert engine.get(q.id).origin_module_id == "m2"
    assert engine.get(p.id).parent_id is None


def test_delete_cascade_removes_attachments() -> None:
    images = RecordingImageStore()
    engine = TaskEngine(images=images)
    a = engine.add_task("A", "m1")
    b = engine.add_task("B", "m1", a.id)
    img = engine.add_image(b.id, "/photos/cat.png")
    keep = engine.add_task("keep", "m1")

    removal = engine.delete_task(a.id)
    assert sorted(removal.removed_ids) == sorted([a.id, b.id])
    assert images.deleted == [img.path]
    assert _ids(engine.all()) == [keep.id]


def test_attachment_failure_does_not_block_removal() -> None:
    images = RecordingImageStore()
    engine = TaskEngine(images=images)
    a = engine.add_task("A", "m1")
    img = engine.add_image(a.id, "/photos/cat.png")
    images.fail_delete.add(img.path)

    removal = engine.delete_tasks_for_module("m1")
    assert removal.removed_ids == [a.id]
    assert [f.path for f in removal.attachment_failures] == [img.path]
    assert engine.all() == []


def test_cover_image_rules() -> None:
    images = RecordingImageStore()
    engine = TaskEngine(images=images)
    t = engine.add_task("photo task", "m1")

    first = engine.add_image(t.id, "/a.png")
    second = engine.add_image(t.id, "/b.png")
    third = engine.add_image(t.id, "/c.png")
    assert first.is_cover and not second.is_cover and not third.is_cover

    assert engine.set_cover_image(t.id, third.id)
    assert [i.is_cover for i in engine.get(t.id).images] == [False, False, True]

    assert engine.remove_image(t.id, third.id) is None
    assert [i.id for i in engine.get(t.id).images] == [first.id, second.id]
    assert engine.get(t.id).images[0].is_cover
    assert images.cleanups == [(t.id, ["mem://" + t.id + "/0", "mem://" + t.id + "/1"])]


def test_add_image_failure_is_returned() -> None:
    images = RecordingImageStore(fail_store=True)
    engine = TaskEngine(images=images)
    t = engine.add_task("x", "m1")

    result = engine.add_image(t.id, "/missing.png")
    assert isinstance(result, AttachmentIOFailure)
    assert engine.get(t.id).images == []


def test_engine_persists_to_store(store: KeyValueStore) -> None:
    engine = TaskEngine(store)
    a = engine.add_task("A", "m1")
    engine.add_task("B", "m1", a.id)
    engine.set_done(a.id, True)

    reloaded = TaskEngine(store)
    assert [(t.text, t.done, t.parent_id) for t in reloaded.all()] == [("A", True, None), ("B", True, a.id)]


def test_loaded_images_keep_a_single_cover(store: KeyValueStore) -> None:
    store.set_json(
        "tasks",
        [
            {
                "id": "t1",
                "text": "photos",
                "originModuleId": "m1",
                "images": [
                    {"id": "i1", "path": "/a.png"},
                    {"id": "i2", "path": "/b.png", "isCover": True},
                    {"id": "i3", "path": "/c.png", "isCover": True},
                ],
            }
        ],
    )
    engine = TaskEngine(store)
    assert [(i.id, i.is_cover) for i in engine.get("t1").images] == [("i1", False), ("i2", True), ("i3", False)]
