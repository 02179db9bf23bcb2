from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from . import access, ordering
from .errors import ConcurrentUpdate, NotFound, ValidationError
from .models import (
    BOARD_DESCRIPTION_MAX,
    BOARD_TITLE_MAX,
    CARD_DESCRIPTION_MAX,
    CARD_TITLE_MAX,
    DEFAULT_LIST_TITLES,
    LIST_TITLE_MAX,
    Board,
    BoardList,
    Card,
    Label,
    Member,
    available_labels,
    from_iso,
    new_id,
    now_utc,
)

logger = logging.getLogger("taskboard.service")

MEMBER_ROLES = ("admin", "member")


def _required_text(value: Optional[str], field: str, label: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{label} is required", [{"field": field, "message": "must not be empty"}])
    if len(text) > max_length:
        raise ValidationError(
            f"{label} cannot exceed {max_length} characters",
            [{"field": field, "message": f"at most {max_length} characters"}],
        )
    return text


def _optional_text(value: Optional[str], field: str, label: str, max_length: int) -> str:
    text = (value or "").strip()
    if len(text) > max_length:
        raise ValidationError(
            f"{label} cannot exceed {max_length} characters",
            [{"field": field, "message": f"at most {max_length} characters"}],
        )
    return text


def _label(value: Any) -> Label:
    if isinstance(value, Label):
        return value
    data = dict(value)
    text = (data.get("text") or "").strip()
    color = (data.get("color") or "").strip()
    if not text or not color:
        raise ValidationError("Label text and color are required", [{"field": "labels", "message": "text and color required"}])
    return Label(id=data.get("id") or new_id(), text=text, color=color)


def _due_date(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return from_iso(value)
    except ValueError:
        raise ValidationError("Invalid due date", [{"field": "dueDate", "message": "must be an ISO-8601 timestamp"}])


def _default_lists(owner_id: str, when: datetime) -> List[BoardList]:
    lists: List[BoardList] = []
    for title in DEFAULT_LIST_TITLES:
        ordering.append(lists, BoardList(id=new_id(), title=title, created_by=owner_id, created_at=when, updated_at=when))
    return lists


class BoardService:
    """Validated, access-checked transformations of the Board aggregate.

    Every mutation loads the aggregate, applies the change in memory and writes
    the whole document back with a version check. The refreshed aggregate is
    returned so callers can hand it to clients as the new source of truth.
    """

    def __init__(self, storage) -> None:
        self.storage = storage

    # === Helpers ===

    def _load(self, board_id: str, expected_version: Optional[int] = None) -> Board:
        board = self.storage.get_board(board_id)
        if expected_version is not None and expected_version != board.version:
            raise ConcurrentUpdate(f"Board is at version {board.version}, not {expected_version}")
        return board

    def _save(self, board: Board, when: Optional[datetime] = None) -> Board:
        board.touch(when)
        return self.storage.save_board(board)

    @staticmethod
    def _list(board: Board, list_id: str) -> BoardList:
        lst = ordering.find(board.lists, list_id)
        if lst is None:
            raise NotFound("List not found")
        return lst

    @staticmethod
    def _card(lst: BoardList, card_id: str) -> Card:
        card = ordering.find(lst.cards, card_id)
        if card is None:
            raise NotFound("Card not found")
        return card

    # === Boards ===

    def create_board(self, title: Optional[str], description: Optional[str], owner_id: str) -> Board:
        title = _required_text(title, "title", "Board title", BOARD_TITLE_MAX)
        description = _optional_text(description, "description", "Description", BOARD_DESCRIPTION_MAX)
        now = now_utc()
        board = Board(
            id=new_id(),
            title=title,
            description=description,
            created_by=owner_id,
            created_at=now,
            updated_at=now,
            members=[Member(user_id=owner_id, role="owner", joined_at=now)],
            lists=_default_lists(owner_id, now),
        )
        self.storage.insert_board(board)
        logger.info("board %s created by %s", board.id, owner_id)
        return board

    def get_boards_for_user(self, user_id: str) -> List[Board]:
        return self.storage.list_boards_for_user(user_id)

    def get_board(self, board_id: str, user_id: str) -> Board:
        board = self._load(board_id)
        access.check_role(board, user_id, access.VIEW)
        return board

    @staticmethod
    def available_labels(board: Board) -> List[Label]:
        return available_labels(board.lists)

    def update_board(
        self,
        board_id: str,
        user_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Board:
        """Apply ``title``, ``description``, ``isPublic`` and ``isStarred`` when present."""
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.MANAGE)
        if "title" in changes:
            board.title = _required_text(changes["title"], "title", "Board title", BOARD_TITLE_MAX)
        if "description" in changes:
            board.description = _optional_text(
                changes["description"], "description", "Description", BOARD_DESCRIPTION_MAX
            )
        if changes.get("isPublic") is not None:
            board.is_public = bool(changes["isPublic"])
        if changes.get("isStarred") is not None:
            board.is_starred = bool(changes["isStarred"])
        self._save(board)
        logger.info("board %s updated by %s", board_id, user_id)
        return board

    def delete_board(self, board_id: str, user_id: str, expected_version: Optional[int] = None) -> None:
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.DELETE, "Only board owner can delete the board")
        self.storage.delete_board(board_id)
        logger.info("board %s deleted by %s", board_id, user_id)

    def add_member(self, board_id: str, user_id: str, member_id: str, role: str = "member") -> Board:
        board = self._load(board_id)
        access.check_role(board, user_id, access.MANAGE)
        if role not in MEMBER_ROLES:
            raise ValidationError(f"Role must be one of {', '.join(MEMBER_ROLES)}", [{"field": "role", "message": "invalid role"}])
        if member_id == board.created_by:
            raise ValidationError("The board owner cannot change role", [{"field": "userId", "message": "is the owner"}])
        if self.storage.get_user(member_id) is None:
            raise NotFound("User not found")
        member = board.member(member_id)
        if member is None:
            board.members.append(Member(user_id=member_id, role=role, joined_at=now_utc()))
        else:
            member.role = role
        self._save(board)
        logger.info("board %s: %s added %s as %s", board_id, user_id, member_id, role)
        return board

    # === Lists ===

    def add_list(self, board_id: str, user_id: str, title: Optional[str], expected_version: Optional[int] = None) -> Board:
        title = _required_text(title, "title", "List title", LIST_TITLE_MAX)
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        now = now_utc()
        ordering.append(board.lists, BoardList(id=new_id(), title=title, created_by=user_id, created_at=now, updated_at=now))
        self._save(board, now)
        logger.info("board %s: list added by %s", board_id, user_id)
        return board

    def update_list(
        self,
        board_id: str,
        list_id: str,
        user_id: str,
        title: Optional[str],
        expected_version: Optional[int] = None,
    ) -> Board:
        title = _required_text(title, "title", "List title", LIST_TITLE_MAX)
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        lst = self._list(board, list_id)
        lst.title = title
        lst.updated_at = now_utc()
        self._save(board, lst.updated_at)
        logger.info("board %s: list %s renamed by %s", board_id, list_id, user_id)
        return board

    def delete_list(self, board_id: str, list_id: str, user_id: str, expected_version: Optional[int] = None) -> Board:
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        self._list(board, list_id)
        ordering.remove(board.lists, list_id)
        self._save(board)
        logger.info("board %s: list %s deleted by %s", board_id, list_id, user_id)
        return board

    def reorder_lists(
        self,
        board_id: str,
        user_id: str,
        from_index: int,
        to_index: int,
        expected_version: Optional[int] = None,
    ) -> Board:
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        try:
            ordering.move_within(board.lists, from_index, to_index)
        except ordering.PositionError as exc:
            raise ValidationError(str(exc), [{"field": "toIndex", "message": str(exc)}])
        self._save(board)
        logger.info("board %s: lists reordered %d -> %d by %s", board_id, from_index, to_index, user_id)
        return board

    # === Cards ===

    def add_card(
        self,
        board_id: str,
        list_id: str,
        user_id: str,
        title: Optional[str],
        description: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Board:
        title = _required_text(title, "title", "Card title", CARD_TITLE_MAX)
        description = _optional_text(description, "description", "Description", CARD_DESCRIPTION_MAX)
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        lst = self._list(board, list_id)
        now = now_utc()
        card = Card(
            id=new_id(),
            title=title,
            description=description,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        ordering.append(lst.cards, card)
        lst.updated_at = now
        self._save(board, now)
        logger.info("board %s: card %s added to list %s by %s", board_id, card.id, list_id, user_id)
        return board

    def update_card(
        self,
        board_id: str,
        list_id: str,
        card_id: str,
        user_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> Board:
        """Partially update a card.

        Only keys present in ``changes`` are applied (``title``, ``description``,
        ``labels``, ``dueDate``, ``position``). An explicit ``None`` clears the
        description, due date or labels. ``labels`` replaces the whole set and
        ``position`` moves the card inside its list.
        """
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        lst = self._list(board, list_id)
        card = self._card(lst, card_id)

        if "title" in changes:
            card.title = _required_text(changes["title"], "title", "Card title", CARD_TITLE_MAX)
        if "description" in changes:
            card.description = _optional_text(changes["description"], "description", "Description", CARD_DESCRIPTION_MAX)
        if "labels" in changes:
            card.labels = [_label(l) for l in changes["labels"] or []]
        if "dueDate" in changes:
            card.due_date = _due_date(changes["dueDate"])
        if changes.get("position") is not None:
            target = ordering.clamp_index(lst.cards, int(changes["position"]))
            ordering.move_within(lst.cards, ordering.index_of(lst.cards, card_id), target)

        card.updated_at = now_utc()
        self._save(board, card.updated_at)
        logger.info("board %s: card %s updated by %s (%s)", board_id, card_id, user_id, ", ".join(sorted(changes)))
        return board

    def move_card(
        self,
        board_id: str,
        list_id: str,
        card_id: str,
        user_id: str,
        to_list_id: str,
        to_index: int,
        expected_version: Optional[int] = None,
    ) -> Board:
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        source = self._list(board, list_id)
        self._card(source, card_id)
        target = self._list(board, to_list_id)
        try:
            card = ordering.move_across(source.cards, target.cards, card_id, to_index)
        except ordering.PositionError as exc:
            raise ValidationError(str(exc), [{"field": "toIndex", "message": str(exc)}])
        card.updated_at = source.updated_at = target.updated_at = now_utc()
        self._save(board, card.updated_at)
        logger.info("board %s: card %s moved %s -> %s[%d] by %s", board_id, card_id, list_id, to_list_id, to_index, user_id)
        return board

    def delete_card(
        self,
        board_id: str,
        list_id: str,
        card_id: str,
        user_id: str,
        expected_version: Optional[int] = None,
    ) -> Board:
        board = self._load(board_id, expected_version)
        access.check_role(board, user_id, access.EDIT)
        lst = self._list(board, list_id)
        self._card(lst, card_id)
        ordering.remove(lst.cards, card_id)
        self._save(board)
        logger.info("board %s: card %s deleted by %s", board_id, card_id, user_id)
        return board
