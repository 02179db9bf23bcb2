import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN, MEMBER, OUTSIDER, OWNER, USERS
from taskboard.auth import create_access_token
from taskboard.db import SqlStorage
from taskboard.errors import ConcurrentUpdate, NotFound
from taskboard.main import create_app
from taskboard.seed import SAMPLE_USERS, seed
from taskboard.service import BoardService


@pytest.fixture
def sql_storage():
    store = SqlStorage("sqlite://")
    for user in USERS:
        store.add_user(user)
    return store


@pytest.fixture
def sql_service(sql_storage):
    return BoardService(sql_storage)


def test_users_round_trip(sql_storage):
    assert sql_storage.get_user(MEMBER.id) == MEMBER
    assert sql_storage.get_user("ghost") is None
    assert set(sql_storage.get_users([OWNER.id, ADMIN.id, "ghost"])) == {OWNER.id, ADMIN.id}
    assert sql_storage.get_users([]) == {}


def test_board_document_round_trip(sql_storage, sql_service):
    board = sql_service.create_board("Roadmap", "Q3", OWNER.id)
    board = sql_service.add_card(board.id, board.lists[0].id, OWNER.id, "Setup")
    card_id = board.lists[0].cards[0].id
    sql_service.update_card(
        board.id,
        board.lists[0].id,
        card_id,
        OWNER.id,
        {"labels": [{"id": "l1", "text": "Bug", "color": "#ef4444"}], "dueDate": "2025-01-01T00:00:00.000Z"},
    )

    loaded = sql_storage.get_board(board.id)
    assert loaded.version == 3
    assert loaded.description == "Q3"
    card = loaded.lists[0].cards[0]
    assert card.title == "Setup"
    assert card.labels[0].text == "Bug"
    assert card.due_date.year == 2025


def test_stale_save_is_rejected(sql_storage, sql_service):
    board = sql_service.create_board("Roadmap", None, OWNER.id)
    first = sql_storage.get_board(board.id)
    second = sql_storage.get_board(board.id)
    first.title = "First"
    second.title = "Second"

    sql_storage.save_board(first)
    with pytest.raises(ConcurrentUpdate):
        sql_storage.save_board(second)
    assert second.version == 1
    assert sql_storage.get_board(board.id).title == "First"


def test_save_unknown_board(sql_storage, sql_service):
    board = sql_service.create_board("Roadmap", None, OWNER.id)
    sql_storage.delete_board(board.id)
    with pytest.raises(NotFound):
        sql_storage.save_board(board)
    with pytest.raises(NotFound):
        sql_storage.get_board(board.id)
    with pytest.raises(NotFound):
        sql_storage.delete_board(board.id)


def test_boards_for_user_follow_membership(sql_storage, sql_service):
    board = sql_service.create_board("Shared", None, OWNER.id)
    assert sql_service.get_boards_for_user(MEMBER.id) == []

    sql_service.add_member(board.id, OWNER.id, MEMBER.id, "member")
    assert [b.id for b in sql_service.get_boards_for_user(MEMBER.id)] == [board.id]
    assert [b.id for b in sql_service.get_boards_for_user(OWNER.id)] == [board.id]
    assert sql_service.get_boards_for_user(OUTSIDER.id) == []

    sql_service.delete_board(board.id, OWNER.id)
    assert sql_service.get_boards_for_user(MEMBER.id) == []


def test_app_over_sql_storage(settings, sql_storage):
    client = TestClient(create_app(settings, sql_storage))
    headers = {"Authorization": f"Bearer {create_access_token(OWNER.id, settings)}"}
    board = client.post("/api/board", json={"title": "Roadmap"}, headers=headers).json()["data"]["board"]
    list_id = board["lists"][1]["id"]
    resp = client.post(f"/api/board/{board['id']}/lists/{list_id}/cards", json={"title": "Ship"}, headers=headers)
    assert resp.status_code == 201
    assert resp.headers["ETag"] == '"2"'

    board = client.get(f"/api/board/{board['id']}", headers=headers).json()["data"]["board"]
    assert [c["title"] for c in board["lists"][1]["cards"]] == ["Ship"]
    assert board["createdBy"]["name"] == OWNER.name


def test_seed_populates_store(settings):
    store = SqlStorage("sqlite://")
    tokens = seed(store, settings)

    assert set(tokens) == {u.email for u in SAMPLE_USERS}
    boards = store.list_boards_for_user(SAMPLE_USERS[2].id)
    assert len(boards) == 1
    board = boards[0]
    assert [len(l.cards) for l in board.lists] == [2, 1, 1]
    assert board.lists[0].cards[0].labels[0].text == "Infrastructure"
