from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from .config import Settings
from .db import SqlStorage
from .errors import ConcurrentUpdate, NotFound
from .models import Board, User

logger = logging.getLogger("taskboard.storage")


class Storage:
    """In-memory document store for boards and the users they reference.

    Boards are kept as serialized documents, so every ``get_board`` hands out
    an independent aggregate and writes only land through ``save_board``.
    """

    def __init__(self) -> None:
        self.boards: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, User] = {}
        self._lock = threading.Lock()

    # === User operations ===
    def add_user(self, user: User) -> User:
        with self._lock:
            self.users[user.id] = user
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        with self._lock:
            users = dict(self.users)
        return {uid: users[uid] for uid in set(user_ids) if uid in users}

    # === Board operations ===
    def insert_board(self, board: Board) -> Board:
        with self._lock:
            board.version = 1
            self.boards[board.id] = board.to_document()
        return board

    def get_board(self, board_id: str) -> Board:
        with self._lock:
            doc = self.boards.get(board_id)
        if doc is None:
            raise NotFound("Board not found")
        return Board.from_document(doc)

    def save_board(self, board: Board) -> Board:
        """Write ``board`` if the stored version still equals ``board.version``."""
        with self._lock:
            current = self.boards.get(board.id)
            if current is None:
                raise NotFound("Board not found")
            if current["version"] != board.version:
                logger.warning(
                    "version conflict on board %s: stored=%s loaded=%s",
                    board.id,
                    current["version"],
                    board.version,
                )
                raise ConcurrentUpdate()
            board.version += 1
            self.boards[board.id] = board.to_document()
        return board

    def delete_board(self, board_id: str) -> None:
        with self._lock:
            if self.boards.pop(board_id, None) is None:
                raise NotFound("Board not found")

    def list_boards_for_user(self, user_id: str) -> List[Board]:
        with self._lock:
            snapshot = list(self.boards.values())
        docs = [
            doc
            for doc in snapshot
            if doc["createdBy"] == user_id or any(m["user"] == user_id for m in doc["members"])
        ]
        docs.sort(key=lambda d: d["updatedAt"], reverse=True)
        return [Board.from_document(d) for d in docs]


def create_storage(settings: Settings):
    if settings.storage_backend == "sql":
        return SqlStorage(settings.database_url)
    if settings.storage_backend != "memory":
        raise ValueError(f"unknown STORAGE_BACKEND {settings.storage_backend!r}")
    return Storage()
