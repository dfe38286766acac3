"""
Tests for column grouping, sorting and search.
"""
from conftest import make_task
from taskboard.grouping import SortKey, column, group_by_status
from taskboard.schema import STATUSES, TaskStatus
from taskboard.search import TaskSearch, filter_tasks
from taskboard.snapshot import BoardSnapshot


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Grouping
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_empty_input_has_every_column():
    groups = group_by_status([])
    assert list(groups) == STATUSES
    assert all(tasks == [] for tasks in groups.values())


def test_position_order():
    tasks = [make_task("C", "todo", 2), make_task("A", "todo", 0), make_task("B", "todo", 1)]
    assert [t.task_id for t in group_by_status(tasks)[TaskStatus.TODO]] == ["A", "B", "C"]


def test_priority_order_is_stable():
    tasks = [
        make_task("L", "todo", 0, priority="low"),
        make_task("M1", "todo", 1),
        make_task("H", "todo", 2, priority="high"),
        make_task("M2", "todo", 3),
    ]
    ordered = group_by_status(tasks, SortKey.PRIORITY)[TaskStatus.TODO]
    assert [t.task_id for t in ordered] == ["H", "M1", "M2", "L"]


def test_grouping_does_not_mutate_input():
    tasks = [make_task("B", "done", 1), make_task("A", "done", 0)]
    group_by_status(tasks)
    assert [t.task_id for t in tasks] == ["B", "A"]


def test_column_filters_status():
    tasks = [make_task("A", "todo", 0), make_task("B", "done", 0)]
    assert [t.task_id for t in column(tasks, TaskStatus.DONE)] == ["B"]


def test_sort_key_from_str():
    assert SortKey.from_str("priority") == SortKey.PRIORITY
    assert SortKey.from_str("whatever") == SortKey.POSITION


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Search
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_empty_query_returns_input_unchanged():
    tasks = [make_task("A")]
    assert filter_tasks(tasks, "") is tasks


def test_matches_title_and_description_case_insensitive():
    tasks = [
        make_task("A", title="Fix LOGIN bug"),
        make_task("B", title="Docs", description="explain login flow"),
        make_task("C", title="Other"),
    ]
    assert [t.task_id for t in filter_tasks(tasks, "Login")] == ["A", "B"]
    assert filter_tasks(tasks, "zzz") == []


def test_search_memoizes_per_revision():
    snapshot = BoardSnapshot([make_task("A", title="alpha"), make_task("B", title="beta", position=1)])
    search = TaskSearch(snapshot)

    first = search.search("a")
    assert search.search("a") is first

    snapshot.add(make_task("C", title="gamma", position=2))
    second = search.search("a")
    assert second is not first
    assert [t.task_id for t in second] == ["A", "B", "C"]

    search.invalidate()
    assert search.search("a") is not second
