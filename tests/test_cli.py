"""Tests for main.py -- the administration CLI.

The command helpers take their stores as arguments, so these tests hand them
in-memory stores instead of the configured databases.
"""

import os

os.environ.setdefault("DEBUG", "true")

import pytest

from auth.models import User
from auth.store import UserStore
from kanban.service import KanbanService
from main import _cmd_create_user, _cmd_orphans, _cmd_tree, _cmd_users, build_parser, main


@pytest.fixture
def user_store():
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


class TestParser:
    def test_subcommands(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["create-user", "ada@deltask.io", "--name", "Ada", "--admin"])
        assert (args.command, args.email, args.name, args.admin) == ("create-user", "ada@deltask.io", "Ada", True)
        serve = parser.parse_args(["serve", "--port", "9000"])
        assert (serve.host, serve.port, serve.reload) == ("127.0.0.1", 9000, False)

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 0
        assert "create-user" in capsys.readouterr().out


class TestCreateUser:
    def test_creates_admin(self, user_store: UserStore, capsys) -> None:
        args = build_parser().parse_args(["create-user", "root@deltask.io", "--password", "longenough", "--admin"])
        assert _cmd_create_user(args, user_store) == 0
        user = user_store.get_by_email("root@deltask.io")
        assert user.role == "admin"
        assert user.name == "root"
        assert "Created admin root@deltask.io" in capsys.readouterr().out

    def test_duplicate_email(self, user_store: UserStore, capsys) -> None:
        args = build_parser().parse_args(["create-user", "ada@deltask.io", "--password", "longenough"])
        assert _cmd_create_user(args, user_store) == 0
        assert _cmd_create_user(args, user_store) == 1
        assert "already exists" in capsys.readouterr().out

    def test_short_password(self, user_store: UserStore) -> None:
        args = build_parser().parse_args(["create-user", "ada@deltask.io", "--password", "short"])
        assert _cmd_create_user(args, user_store) == 1
        assert user_store.get_by_email("ada@deltask.io") is None


class TestUsers:
    def test_empty(self, user_store: UserStore, capsys) -> None:
        assert _cmd_users(build_parser().parse_args(["users"]), user_store) == 0
        assert "No users yet" in capsys.readouterr().out

    def test_lists_accounts(self, user_store: UserStore, capsys) -> None:
        user_store.create_user(User(email="b@deltask.io", name="B", is_active=False))
        uid = user_store.create_user(User(email="a@deltask.io", name="A", role="admin"))
        user_store.update_last_login(uid)
        assert _cmd_users(build_parser().parse_args(["users"]), user_store) == 0
        first, second = capsys.readouterr().out.splitlines()
        assert first.split()[:3] == ["a@deltask.io", "admin", "active"]
        assert "never" not in first
        assert second.split()[:3] == ["b@deltask.io", "user", "disabled"]
        assert second.endswith("last login never")


class TestTree:
    def test_prints_hierarchy_in_order(self, user_store: UserStore, service: KanbanService, capsys) -> None:
        uid = user_store.create_user(User(email="ada@deltask.io", name="Ada"))
        ws = service.create_workspace("Team", uid)
        board = service.create_board(ws.id, "Roadmap", uid)
        done = service.create_column(board.id, "Done", uid, order=1)
        todo = service.create_column(board.id, "Todo", uid, order=0)
        service.create_card(todo.id, "Draft plan", uid, tags=["docs"])
        service.create_card(done.id, "Kickoff", uid)

        args = build_parser().parse_args(["tree", "ada@deltask.io"])
        assert _cmd_tree(args, user_store, service) == 0
        out = capsys.readouterr().out
        assert "Team  [owner, 1 member(s)]" in out
        assert out.index("Todo") < out.index("Draft plan") < out.index("Done") < out.index("Kickoff")
        assert "#docs" in out

    def test_unknown_user(self, user_store: UserStore, service: KanbanService) -> None:
        args = build_parser().parse_args(["tree", "ghost@deltask.io"])
        assert _cmd_tree(args, user_store, service) == 1

    def test_no_workspaces(self, user_store: UserStore, service: KanbanService, capsys) -> None:
        user_store.create_user(User(email="ada@deltask.io", name="Ada"))
        args = build_parser().parse_args(["tree", "ada@deltask.io"])
        assert _cmd_tree(args, user_store, service) == 0
        assert "not a member of any workspace" in capsys.readouterr().out


class TestOrphans:
    def test_counts_after_non_cascading_delete(self, service: KanbanService, capsys) -> None:
        ws = service.create_workspace("Team", "u1")
        board = service.create_board(ws.id, "B", "u1")
        col = service.create_column(board.id, "Todo", "u1")
        service.create_card(col.id, "x", "u1")
        service.delete_board(board.id, "u1")

        args = build_parser().parse_args(["orphans"])
        assert _cmd_orphans(args, service.store) == 0
        lines = capsys.readouterr().out.splitlines()
        assert [line.split() for line in lines] == [["boards", "0"], ["columns", "1"], ["cards", "0"]]
