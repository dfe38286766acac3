"""
End-to-end tests for the taskboard CLI against a local SQLite database.
"""
import pytest

from taskboard.cli import main, render
from taskboard.schema import TaskStatus
from taskboard.store import SqliteTaskStore

from conftest import make_task


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """Run the CLI with a fresh DB and no config file or env overrides."""
    monkeypatch.chdir(tmp_path)
    for var in ("TASKBOARD_API_URL", "TASKBOARD_API_TOKEN", "TASKBOARD_DB", "TASKBOARD_WORKSPACE"):
        monkeypatch.delenv(var, raising=False)
    db = str(tmp_path / "tasks.db")

    def invoke(*args):
        return main(["--db", db, "--workspace", "ws-1", *args])

    invoke.db = db
    return invoke


def test_render_shows_every_column():
    out = render({TaskStatus.TODO: [make_task("t1", title="Write docs")]})
    assert "TO DO (1)" in out
    assert "[0] Write docs  (medium)  t1" in out
    assert "IN PROGRESS (0)" in out
    assert "DONE (0)" in out


def test_add_move_show(cli, capsys):
    for title in ("A", "B", "C"):
        assert cli("add", title) == 0
    assert cli("move", "todo", "0", "2") == 0
    capsys.readouterr()

    assert cli("show") == 0
    out = capsys.readouterr().out
    assert out.index("] B") < out.index("] C") < out.index("] A")

    store = SqliteTaskStore(cli.db)
    assert [t.title for t in store.list_tasks("ws-1")] == ["B", "C", "A"]


def test_move_out_of_range_exits_1(cli, capsys):
    cli("add", "A")
    assert cli("move", "todo", "5", "0") == 1
    assert "Move rejected" in capsys.readouterr().err


def test_status_and_delete(cli, capsys):
    cli("add", "A")
    cli("add", "B")
    task_id = SqliteTaskStore(cli.db).list_tasks("ws-1")[0].task_id

    assert cli("status", task_id, "done") == 0
    assert cli("delete", task_id) == 0
    assert cli("check") == 0
    assert "OK" in capsys.readouterr().out

    remaining = SqliteTaskStore(cli.db).list_tasks("ws-1")
    assert [(t.title, t.position) for t in remaining] == [("B", 0)]


def test_search_filter(cli, capsys):
    cli("add", "Fix login")
    cli("add", "Write docs")
    capsys.readouterr()
    cli("show", "--search", "LOGIN")
    out = capsys.readouterr().out
    assert "Fix login" in out
    assert "Write docs" not in out


def test_check_reports_gap(cli, capsys):
    store = SqliteTaskStore(cli.db)
    store.save(make_task("A", "todo", 0))
    store.save(make_task("B", "todo", 3))
    assert cli("check") == 3
    assert "Invariant violated" in capsys.readouterr().err


def test_unknown_task_exits_1(cli):
    assert cli("delete", "nope") == 1
