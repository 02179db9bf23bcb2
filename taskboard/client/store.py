"""Client-side board state.

``BoardStore`` is an explicit state container owned by the application root.
Its mutation methods are synchronous and mirror the server's ordering rules,
so an optimistic change looks the way the server will eventually render it.
What survives a reload is decided by ``StoreConfig.persisted_fields``.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .. import ordering
from ..models import available_labels, from_iso, now_utc
from ..schemas import BoardOut, CardOut, LabelOut, ListOut

logger = logging.getLogger("taskboard.client.store")

NOTIFICATION_TYPES = ("info", "success", "warning", "error")
SNAPSHOT_FIELDS = ("board", "selected_card", "notifications")


@dataclass
class StoreConfig:
    persisted_fields: Tuple[str, ...] = ("board",)
    snapshot_path: Optional[Path] = None
    max_notifications: int = 50

    def __post_init__(self) -> None:
        unknown = set(self.persisted_fields) - set(SNAPSHOT_FIELDS)
        if unknown:
            raise ValueError(f"cannot persist {sorted(unknown)}")


# === Notifications ===


@dataclass
class Notification:
    id: str
    type: str
    title: str
    message: Optional[str] = None
    timestamp: str = ""
    read: bool = False


class NotificationCenter:
    """Newest-first toast queue, capped at ``limit`` entries."""

    def __init__(self, limit: int = 50) -> None:
        self.limit = limit
        self.items: List[Notification] = []

    def __iter__(self) -> Iterator[Notification]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.items if not n.read)

    def add(self, type: str, title: str, message: Optional[str] = None) -> Notification:
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"unknown notification type {type!r}")
        notification = Notification(
            id=uuid.uuid4().hex,
            type=type,
            title=title,
            message=message,
            timestamp=now_utc().isoformat(),
        )
        self.items = [notification, *self.items][: self.limit]
        return notification

    def remove(self, notification_id: str) -> None:
        self.items = [n for n in self.items if n.id != notification_id]

    def mark_read(self, notification_id: str) -> None:
        for n in self.items:
            if n.id == notification_id:
                n.read = True

    def mark_all_read(self) -> None:
        for n in self.items:
            n.read = True

    def clear(self) -> None:
        self.items = []


@dataclass
class SelectedCard:
    """A card open in a detail view, held apart from ``BoardStore.board``."""

    list_id: str
    card: CardOut


# === Store ===


def _local_label(value: Any) -> LabelOut:
    if isinstance(value, LabelOut):
        return value
    data = value if isinstance(value, Mapping) else value.model_dump()
    return LabelOut(id=data.get("id") or uuid.uuid4().hex, text=data["text"], color=data["color"])


def _apply_card_fields(card: CardOut, updates: Mapping[str, Any]) -> None:
    title = (updates.get("title") or "").strip()
    if title:
        # Blank titles are never applied.
        card.title = title
    if "description" in updates:
        card.description = updates["description"] or ""
    if "labels" in updates:
        card.labels = [_local_label(l) for l in updates["labels"] or []]
    if "dueDate" in updates:
        due = updates["dueDate"]
        card.dueDate = from_iso(due) if isinstance(due, str) else due
    card.updatedAt = now_utc()


class BoardStore:
    def __init__(self, board: Optional[BoardOut] = None, config: Optional[StoreConfig] = None) -> None:
        self.config = config or StoreConfig()
        self.board = board
        self.selected_card: Optional[SelectedCard] = None
        self.notifications = NotificationCenter(self.config.max_notifications)

    # === Lookup ===

    def _require_board(self) -> BoardOut:
        if self.board is None:
            raise LookupError("no board loaded")
        return self.board

    def find_list(self, list_id: str) -> Optional[ListOut]:
        return ordering.find(self._require_board().lists, list_id)

    def find_card(self, list_id: str, card_id: str) -> Optional[CardOut]:
        lst = self.find_list(list_id)
        return ordering.find(lst.cards, card_id) if lst else None

    def _touch(self) -> None:
        self._require_board().updatedAt = now_utc()

    # === Whole-board replacement ===

    def set_board(self, board: BoardOut) -> None:
        """Replace local state with ``board`` and refresh any open card view."""
        self.board = board
        if self.selected_card is not None:
            card = self.find_card(self.selected_card.list_id, self.selected_card.card.id)
            if card is not None:
                self.selected_card.card = card.model_copy(deep=True)

    def select_card(self, list_id: str, card_id: str) -> Optional[SelectedCard]:
        card = self.find_card(list_id, card_id)
        self.selected_card = SelectedCard(list_id, card.model_copy(deep=True)) if card else None
        return self.selected_card

    def close_card(self) -> None:
        self.selected_card = None

    # === Lists ===

    def add_list(self, title: str) -> ListOut:
        board = self._require_board()
        now = now_utc()
        lst = ListOut(id=uuid.uuid4().hex, title=title, createdAt=now, updatedAt=now)
        ordering.append(board.lists, lst)
        self._touch()
        return lst

    def update_list(self, list_id: str, title: str) -> Optional[ListOut]:
        lst = self.find_list(list_id)
        if lst is not None:
            lst.title = title
            lst.updatedAt = now_utc()
            self._touch()
        return lst

    def delete_list(self, list_id: str) -> None:
        board = self._require_board()
        if ordering.index_of(board.lists, list_id) >= 0:
            ordering.remove(board.lists, list_id)
            self._touch()

    def reorder_lists(self, from_index: int, to_index: int) -> ListOut:
        lst = ordering.move_within(self._require_board().lists, from_index, to_index)
        self._touch()
        return lst

    # === Cards ===

    def add_card(self, list_id: str, title: str, description: Optional[str] = None) -> Optional[CardOut]:
        lst = self.find_list(list_id)
        if lst is None:
            logger.debug("add_card: list %s not in local board", list_id)
            return None
        now = now_utc()
        card = CardOut(id=uuid.uuid4().hex, title=title, description=description or "", createdAt=now, updatedAt=now)
        ordering.append(lst.cards, card)
        lst.updatedAt = now
        self._touch()
        return card

    def update_card(self, list_id: str, card_id: str, updates: Mapping[str, Any]) -> Optional[CardOut]:
        """Merge ``updates`` into the card and into the open card view, if it shows the same card."""
        lst = self.find_list(list_id)
        card = ordering.find(lst.cards, card_id) if lst else None
        if card is not None:
            _apply_card_fields(card, updates)
            if updates.get("position") is not None:
                target = ordering.clamp_index(lst.cards, int(updates["position"]))
                ordering.move_within(lst.cards, ordering.index_of(lst.cards, card_id), target)
            self._touch()
        selected = self.selected_card
        if selected is not None and selected.card.id == card_id:
            _apply_card_fields(selected.card, updates)
            if card is not None:
                selected.card.position = card.position
        return card

    def delete_card(self, list_id: str, card_id: str) -> None:
        lst = self.find_list(list_id)
        if lst is not None and ordering.index_of(lst.cards, card_id) >= 0:
            ordering.remove(lst.cards, card_id)
            self._touch()
        if self.selected_card is not None and self.selected_card.card.id == card_id:
            self.selected_card = None

    def move_card(self, from_list_id: str, to_list_id: str, card_id: str, to_index: int) -> Optional[CardOut]:
        source = self.find_list(from_list_id)
        target = self.find_list(to_list_id)
        if source is None or target is None or ordering.index_of(source.cards, card_id) < 0:
            return None
        card = ordering.move_across(source.cards, target.cards, card_id, to_index)
        if self.selected_card is not None and self.selected_card.card.id == card_id:
            self.selected_card.list_id = to_list_id
            self.selected_card.card.position = card.position
        self._touch()
        return card

    def reorder_cards(self, list_id: str, from_index: int, to_index: int) -> Optional[CardOut]:
        lst = self.find_list(list_id)
        if lst is None:
            return None
        card = ordering.move_within(lst.cards, from_index, to_index)
        self._touch()
        return card

    # === Labels ===

    def add_label(self, list_id: str, card_id: str, text: str, color: str) -> Optional[List[LabelOut]]:
        """Append a new label; returns the card's full label set for syncing."""
        card = self.find_card(list_id, card_id)
        if card is None:
            return None
        labels = [*card.labels, LabelOut(id=uuid.uuid4().hex, text=text, color=color)]
        self.update_card(list_id, card_id, {"labels": labels})
        return labels

    def remove_label(self, list_id: str, card_id: str, label_id: str) -> Optional[List[LabelOut]]:
        card = self.find_card(list_id, card_id)
        if card is None:
            return None
        labels = [l for l in card.labels if l.id != label_id]
        self.update_card(list_id, card_id, {"labels": labels})
        return labels

    def toggle_star(self) -> bool:
        board = self._require_board()
        board.isStarred = not board.isStarred
        self._touch()
        return board.isStarred

    # === Queries ===

    def search_cards(self, query: str) -> List[CardOut]:
        needle = query.lower()
        return [
            card
            for lst in self._require_board().lists
            for card in lst.cards
            if needle in card.title.lower()
            or needle in card.description.lower()
            or any(needle in label.text.lower() for label in card.labels)
        ]

    def cards_by_label(self, label_id: str) -> List[CardOut]:
        return [
            card
            for lst in self._require_board().lists
            for card in lst.cards
            if any(label.id == label_id for label in card.labels)
        ]

    def available_labels(self) -> List[LabelOut]:
        return available_labels(self._require_board().lists)

    def filtered_board(self, query: str = "", label_ids: Optional[List[str]] = None) -> BoardOut:
        """A copy of the board with only cards matching ``query`` and any of ``label_ids``."""
        board = self._require_board().model_copy(deep=True)
        needle = query.strip().lower()
        wanted = set(label_ids or [])
        for lst in board.lists:
            lst.cards = [
                card
                for card in lst.cards
                if (
                    not needle
                    or needle in card.title.lower()
                    or needle in card.description.lower()
                    or any(needle in label.text.lower() for label in card.labels)
                )
                and (not wanted or any(label.id in wanted for label in card.labels))
            ]
        return board

    # === Snapshot ===

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        fields = self.config.persisted_fields
        if "board" in fields and self.board is not None:
            data["board"] = self.board.model_dump(mode="json")
        if "selected_card" in fields and self.selected_card is not None:
            data["selected_card"] = {
                "listId": self.selected_card.list_id,
                "card": self.selected_card.card.model_dump(mode="json"),
            }
        if "notifications" in fields:
            data["notifications"] = [asdict(n) for n in self.notifications]
        return data

    def restore(self, data: Mapping[str, Any]) -> None:
        fields = self.config.persisted_fields
        if "board" in fields and data.get("board"):
            self.board = BoardOut.model_validate(data["board"])
        if "selected_card" in fields and data.get("selected_card"):
            raw = data["selected_card"]
            self.selected_card = SelectedCard(raw["listId"], CardOut.model_validate(raw["card"]))
        if "notifications" in fields and "notifications" in data:
            self.notifications.items = [Notification(**n) for n in data["notifications"]]

    def save_snapshot(self) -> Optional[Path]:
        path = self.config.snapshot_path
        if path is None:
            return None
        path = Path(path)
        path.write_text(json.dumps(self.snapshot()), encoding="utf-8")
        return path

    def load_snapshot(self) -> bool:
        path = self.config.snapshot_path
        if path is None or not Path(path).exists():
            return False
        self.restore(json.loads(Path(path).read_text(encoding="utf-8")))
        return True
