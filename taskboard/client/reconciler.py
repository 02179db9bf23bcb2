"""Optimistic update protocol between a ``BoardStore`` and the board API.

Every call follows the same four steps:

1. apply the mutation to the local store, synchronously;
2. send the same intent to the server;
3. on success, replace the local board with the server's aggregate;
4. on failure, keep the optimistic state and queue an error notification.

Step 4 does not roll anything back. After a FAILED result the local board may
disagree with the server until the next full load; that is the contract, and
``SyncOutcome.FAILED`` is how callers observe it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from ..schemas import BoardOut
from .api import ApiError, BoardApiClient
from .store import BoardStore

logger = logging.getLogger("taskboard.client.reconciler")

DEFAULT_BOARD_TITLE = "Mi Tablero"


class SyncOutcome(str, enum.Enum):
    APPLIED_LOCALLY = "applied-locally"
    CONFIRMED = "confirmed"
    FAILED = "failed-left-dangling"
    SUPERSEDED = "superseded"


@dataclass
class SyncResult:
    outcome: SyncOutcome
    board: Optional[BoardOut]
    ticket: int
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (SyncOutcome.CONFIRMED, SyncOutcome.SUPERSEDED)


class Reconciler:
    def __init__(self, store: BoardStore, api: BoardApiClient) -> None:
        self.store = store
        self.api = api
        self._issued = 0
        self._applied = 0
        self.last_outcome = SyncOutcome.CONFIRMED

    @property
    def board_id(self) -> str:
        board = self.store.board
        if board is None:
            raise LookupError("no board loaded")
        return board.id

    def _require_card(self, list_id: str, card_id: str) -> None:
        if self.store.find_card(list_id, card_id) is None:
            raise LookupError(f"no card {card_id} in list {list_id}")

    async def _sync(
        self,
        apply_local: Callable[[], Any],
        send: Callable[[Any], Awaitable[BoardOut]],
        failure_message: str,
    ) -> SyncResult:
        self._issued += 1
        ticket = self._issued
        local = apply_local()
        self.last_outcome = SyncOutcome.APPLIED_LOCALLY
        try:
            board = await send(local)
        except ApiError as exc:
            logger.warning("mutation %d failed (%s); keeping optimistic state", ticket, exc)
            self.store.notifications.add("error", "Error", failure_message)
            self.last_outcome = SyncOutcome.FAILED
            return SyncResult(SyncOutcome.FAILED, self.store.board, ticket, exc)
        if ticket < self._applied:
            # A later mutation already brought newer server state.
            logger.debug("dropping response %d, already applied %d", ticket, self._applied)
            self.last_outcome = SyncOutcome.SUPERSEDED
            return SyncResult(SyncOutcome.SUPERSEDED, self.store.board, ticket)
        self._applied = ticket
        self.store.set_board(board)
        self.last_outcome = SyncOutcome.CONFIRMED
        return SyncResult(SyncOutcome.CONFIRMED, board, ticket)

    # === Loading ===

    async def load(self) -> BoardOut:
        """Load the caller's most recent board, creating one if they have none."""
        boards: List[BoardOut] = await self.api.get_boards()
        board = boards[0] if boards else await self.api.create_board(DEFAULT_BOARD_TITLE)
        self.store.set_board(board)
        return board

    async def refresh(self) -> BoardOut:
        """Reload the open board from the server, discarding unconfirmed local state."""
        board = await self.api.get_board(self.board_id)
        self._applied = self._issued
        self.store.set_board(board)
        return board

    # === Lists ===

    async def add_list(self, title: str) -> SyncResult:
        return await self._sync(
            lambda: self.store.add_list(title),
            lambda _: self.api.add_list(self.board_id, title),
            "Could not sync the new list with the server",
        )

    async def update_list(self, list_id: str, title: str) -> SyncResult:
        return await self._sync(
            lambda: self.store.update_list(list_id, title),
            lambda _: self.api.update_list(self.board_id, list_id, title),
            "Could not rename the list on the server",
        )

    async def delete_list(self, list_id: str) -> SyncResult:
        return await self._sync(
            lambda: self.store.delete_list(list_id),
            lambda _: self.api.delete_list(self.board_id, list_id),
            "Could not delete the list on the server",
        )

    async def reorder_lists(self, from_index: int, to_index: int) -> SyncResult:
        return await self._sync(
            lambda: self.store.reorder_lists(from_index, to_index),
            lambda _: self.api.reorder_lists(self.board_id, from_index, to_index),
            "Could not save the list order on the server",
        )

    # === Cards ===

    async def add_card(self, list_id: str, title: str, description: Optional[str] = None) -> SyncResult:
        return await self._sync(
            lambda: self.store.add_card(list_id, title, description),
            lambda _: self.api.add_card(self.board_id, list_id, title, description),
            "Could not sync the new card with the server",
        )

    async def update_card(self, list_id: str, card_id: str, updates: Mapping[str, Any]) -> SyncResult:
        return await self._sync(
            lambda: self.store.update_card(list_id, card_id, updates),
            lambda _: self.api.update_card(self.board_id, list_id, card_id, dict(updates)),
            "Could not sync card changes with the server",
        )

    async def add_label(self, list_id: str, card_id: str, text: str, color: str) -> SyncResult:
        self._require_card(list_id, card_id)
        return await self._sync(
            lambda: self.store.add_label(list_id, card_id, text, color),
            lambda labels: self.api.update_card(self.board_id, list_id, card_id, {"labels": labels}),
            "Could not sync the label with the server",
        )

    async def remove_label(self, list_id: str, card_id: str, label_id: str) -> SyncResult:
        self._require_card(list_id, card_id)
        return await self._sync(
            lambda: self.store.remove_label(list_id, card_id, label_id),
            lambda labels: self.api.update_card(self.board_id, list_id, card_id, {"labels": labels}),
            "Could not remove the label on the server",
        )

    async def move_card(self, from_list_id: str, to_list_id: str, card_id: str, to_index: int) -> SyncResult:
        return await self._sync(
            lambda: self.store.move_card(from_list_id, to_list_id, card_id, to_index),
            lambda _: self.api.move_card(self.board_id, from_list_id, card_id, to_list_id, to_index),
            "Could not save the card move on the server",
        )

    async def reorder_cards(self, list_id: str, from_index: int, to_index: int) -> SyncResult:
        lst = self.store.find_list(list_id)
        if lst is None or not 0 <= from_index < len(lst.cards):
            raise LookupError(f"no card at index {from_index} of list {list_id}")
        card_id = lst.cards[from_index].id
        return await self._sync(
            lambda: self.store.reorder_cards(list_id, from_index, to_index),
            lambda _: self.api.move_card(self.board_id, list_id, card_id, list_id, to_index),
            "Could not save the card order on the server",
        )

    async def delete_card(self, list_id: str, card_id: str) -> SyncResult:
        return await self._sync(
            lambda: self.store.delete_card(list_id, card_id),
            lambda _: self.api.delete_card(self.board_id, list_id, card_id),
            "Could not delete the card on the server",
        )

    # === Board ===

    async def toggle_star(self) -> SyncResult:
        return await self._sync(
            self.store.toggle_star,
            lambda starred: self.api.update_board(self.board_id, isStarred=starred),
            "Could not update the board on the server",
        )
