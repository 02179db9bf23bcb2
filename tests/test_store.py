from datetime import datetime, timezone

import pytest

from taskboard.client.store import BoardStore, NotificationCenter, StoreConfig
from taskboard.schemas import BoardOut, CardOut, LabelOut, ListOut

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)

BUG = LabelOut(id="l-bug", text="Bug", color="#ef4444")
UI = LabelOut(id="l-ui", text="UI", color="#3b82f6")
BUG_COPY = LabelOut(id="l-bug-2", text="Bug", color="#ef4444")


def card(card_id, title, position, description="", labels=()):
    return CardOut(
        id=card_id,
        title=title,
        description=description,
        labels=list(labels),
        position=position,
        createdAt=T0,
        updatedAt=T0,
    )


@pytest.fixture
def board():
    return BoardOut(
        id="b1",
        title="Roadmap",
        createdAt=T0,
        updatedAt=T0,
        version=4,
        lists=[
            ListOut(
                id="todo",
                title="Lista de tareas",
                position=0,
                createdAt=T0,
                updatedAt=T0,
                cards=[
                    card("c1", "Fix login", 0, "500 on submit", [BUG]),
                    card("c2", "Polish header", 1, "", [UI, BUG_COPY]),
                ],
            ),
            ListOut(
                id="doing",
                title="En proceso",
                position=1,
                createdAt=T0,
                updatedAt=T0,
                cards=[card("c3", "Write docs", 0, "login flow")],
            ),
            ListOut(id="done", title="Hecho", position=2, createdAt=T0, updatedAt=T0),
        ],
    )


@pytest.fixture
def store(board):
    return BoardStore(board)


# === Queries ===


def test_search_matches_title_description_and_labels(store):
    assert [c.id for c in store.search_cards("LOGIN")] == ["c1", "c3"]
    assert [c.id for c in store.search_cards("ui")] == ["c2"]
    assert store.search_cards("nothing") == []


def test_cards_by_label(store):
    assert [c.id for c in store.cards_by_label("l-bug")] == ["c1"]
    assert [c.id for c in store.cards_by_label("l-ui")] == ["c2"]


def test_available_labels_dedupe_on_text_and_color(store):
    assert store.available_labels() == [BUG, UI]


def test_filtered_board_leaves_store_alone(store):
    filtered = store.filtered_board("docs")
    assert [[c.id for c in l.cards] for l in filtered.lists] == [[], ["c3"], []]
    assert len(store.board.lists[0].cards) == 2

    filtered = store.filtered_board(label_ids=["l-ui"])
    assert [[c.id for c in l.cards] for l in filtered.lists] == [["c2"], [], []]

    filtered = store.filtered_board("fix", label_ids=["l-ui"])
    assert all(l.cards == [] for l in filtered.lists)


def test_store_without_board():
    store = BoardStore()
    with pytest.raises(LookupError):
        store.add_list("x")


# === Mutations ===


def test_add_card_appends_dense(store):
    new = store.add_card("todo", "Third")
    assert new.position == 2
    assert [c.position for c in store.board.lists[0].cards] == [0, 1, 2]
    assert store.add_card("missing", "Lost") is None


def test_add_and_reorder_lists(store):
    store.add_list("Review")
    assert store.board.lists[-1].position == 3
    store.reorder_lists(3, 0)
    assert [l.title for l in store.board.lists][:2] == ["Review", "Lista de tareas"]
    assert [l.position for l in store.board.lists] == [0, 1, 2, 3]


def test_delete_list_renumbers(store):
    store.delete_list("todo")
    assert [(l.id, l.position) for l in store.board.lists] == [("doing", 0), ("done", 1)]


def test_move_card_across_lists(store):
    store.move_card("todo", "doing", "c1", 1)
    assert [(c.id, c.position) for c in store.board.lists[0].cards] == [("c2", 0)]
    assert [(c.id, c.position) for c in store.board.lists[1].cards] == [("c3", 0), ("c1", 1)]


def test_reorder_cards(store):
    store.reorder_cards("todo", 1, 0)
    assert [(c.id, c.position) for c in store.board.lists[0].cards] == [("c2", 0), ("c1", 1)]


def test_update_card_position_clamps(store):
    store.update_card("todo", "c1", {"position": 99})
    assert [c.id for c in store.board.lists[0].cards] == ["c2", "c1"]


def test_toggle_star(store):
    assert store.toggle_star() is True
    assert store.toggle_star() is False


# === Selected card ===


def test_update_card_patches_selected_card(store):
    store.select_card("todo", "c1")
    store.update_card("todo", "c1", {"title": "Fix login form", "dueDate": "2025-02-01T00:00:00.000Z"})

    selected = store.selected_card.card
    assert selected.title == "Fix login form"
    assert selected.dueDate == datetime(2025, 2, 1, tzinfo=timezone.utc)
    assert store.board.lists[0].cards[0].title == "Fix login form"
    assert selected is not store.board.lists[0].cards[0]


def test_selected_card_follows_move(store):
    store.select_card("todo", "c1")
    store.move_card("todo", "done", "c1", 0)
    assert store.selected_card.list_id == "done"


def test_delete_card_closes_selected(store):
    store.select_card("todo", "c2")
    store.delete_card("todo", "c2")
    assert store.selected_card is None
    assert [c.id for c in store.board.lists[0].cards] == ["c1"]


def test_set_board_refreshes_selected(store, board):
    store.select_card("todo", "c1")
    fresh = board.model_copy(deep=True)
    fresh.lists[0].cards[0].title = "From server"
    store.set_board(fresh)
    assert store.selected_card.card.title == "From server"


def test_add_and_remove_label(store):
    store.select_card("doing", "c3")
    labels = store.add_label("doing", "c3", "Docs", "#8b5cf6")
    assert [l.text for l in labels] == ["Docs"]
    assert [l.text for l in store.selected_card.card.labels] == ["Docs"]

    labels = store.remove_label("doing", "c3", labels[0].id)
    assert labels == []
    assert store.board.lists[1].cards[0].labels == []
    assert store.add_label("doing", "ghost", "x", "#000") is None


# === Notifications ===


def test_notifications_are_capped_newest_first():
    center = NotificationCenter(limit=50)
    for i in range(55):
        center.add("info", f"n{i}")
    assert len(center) == 50
    assert center.items[0].title == "n54"
    assert center.items[-1].title == "n5"


def test_notification_read_state():
    center = NotificationCenter()
    first = center.add("success", "Saved")
    center.add("error", "Failed", "try again")
    assert center.unread_count == 2
    center.mark_read(first.id)
    assert center.unread_count == 1
    center.mark_all_read()
    assert center.unread_count == 0
    center.remove(first.id)
    assert [n.title for n in center] == ["Failed"]
    center.clear()
    assert len(center) == 0


def test_unknown_notification_type():
    with pytest.raises(ValueError):
        NotificationCenter().add("shout", "Hey")


# === Snapshot ===


def test_default_snapshot_keeps_only_board(store):
    store.select_card("todo", "c1")
    store.notifications.add("info", "hello")
    data = store.snapshot()
    assert set(data) == {"board"}
    assert data["board"]["updatedAt"].endswith("Z")


def test_snapshot_file_round_trip(board, tmp_path):
    path = tmp_path / "board.json"
    config = StoreConfig(persisted_fields=("board", "notifications"), snapshot_path=path)
    store = BoardStore(board, config)
    store.notifications.add("warning", "offline")
    assert store.save_snapshot() == path

    restored = BoardStore(config=config)
    assert restored.load_snapshot() is True
    assert restored.board.model_dump() == board.model_dump()
    assert [n.title for n in restored.notifications] == ["offline"]
    assert restored.selected_card is None


def test_load_snapshot_without_file(tmp_path):
    store = BoardStore(config=StoreConfig(snapshot_path=tmp_path / "missing.json"))
    assert store.load_snapshot() is False
    assert BoardStore().save_snapshot() is None


def test_config_rejects_unknown_fields():
    with pytest.raises(ValueError):
        StoreConfig(persisted_fields=("board", "session"))


@pytest.mark.parametrize("title", [None, "", "   "])
def test_blank_title_is_not_applied_locally(store, title):
    store.update_card("todo", "c1", {"title": title, "description": "still applied"})
    updated = store.find_card("todo", "c1")
    assert updated.title == "Fix login"
    assert updated.description == "still applied"
    assert [c.id for c in store.search_cards("fix")] == ["c1"]
