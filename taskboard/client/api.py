from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ..schemas import BoardOut, CardUpdate, Envelope

logger = logging.getLogger("taskboard.client.api")

DEFAULT_BASE_URL = "http://localhost:8000"


class ApiError(Exception):
    """A request did not come back as ``{"success": true}``.

    ``status`` is 0 when the request never reached the server.
    """

    def __init__(self, status: int, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        self.status = status
        self.message = message
        self.errors = errors or []
        super().__init__(f"{status}: {message}")


class BoardApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ) -> None:
        self.token = token
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BoardApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Envelope:
        try:
            resp = await self._client.request(method, path, json=json, headers=self._headers())
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %r", method, path, exc)
            raise ApiError(0, f"Network error: {exc}") from exc
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.is_error or not body.get("success"):
            raise ApiError(resp.status_code, body.get("message") or resp.reason_phrase, body.get("errors"))
        return Envelope.model_validate(body)

    async def _board(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> BoardOut:
        envelope = await self._request(method, path, json)
        return BoardOut.model_validate(envelope.data["board"])

    # === Boards ===

    async def get_boards(self) -> List[BoardOut]:
        envelope = await self._request("GET", "/api/board")
        return [BoardOut.model_validate(b) for b in envelope.data["boards"]]

    async def get_board(self, board_id: str) -> BoardOut:
        return await self._board("GET", f"/api/board/{board_id}")

    async def create_board(self, title: str, description: Optional[str] = None) -> BoardOut:
        return await self._board("POST", "/api/board", {"title": title, "description": description})

    async def update_board(self, board_id: str, **changes: Any) -> BoardOut:
        return await self._board("PUT", f"/api/board/{board_id}", changes)

    async def delete_board(self, board_id: str) -> None:
        await self._request("DELETE", f"/api/board/{board_id}")

    async def add_member(self, board_id: str, user_id: str, role: str = "member") -> BoardOut:
        return await self._board("POST", f"/api/board/{board_id}/members", {"userId": user_id, "role": role})

    # === Lists ===

    async def add_list(self, board_id: str, title: str) -> BoardOut:
        return await self._board("POST", f"/api/board/{board_id}/lists", {"title": title})

    async def update_list(self, board_id: str, list_id: str, title: str) -> BoardOut:
        return await self._board("PUT", f"/api/board/{board_id}/lists/{list_id}", {"title": title})

    async def delete_list(self, board_id: str, list_id: str) -> BoardOut:
        return await self._board("DELETE", f"/api/board/{board_id}/lists/{list_id}")

    async def reorder_lists(self, board_id: str, from_index: int, to_index: int) -> BoardOut:
        return await self._board(
            "PUT", f"/api/board/{board_id}/lists/reorder", {"fromIndex": from_index, "toIndex": to_index}
        )

    # === Cards ===

    async def add_card(
        self, board_id: str, list_id: str, title: str, description: Optional[str] = None
    ) -> BoardOut:
        return await self._board(
            "POST", f"/api/board/{board_id}/lists/{list_id}/cards", {"title": title, "description": description}
        )

    async def update_card(self, board_id: str, list_id: str, card_id: str, updates: Dict[str, Any]) -> BoardOut:
        updates = dict(updates)
        if updates.get("labels") is not None:
            updates["labels"] = [l.model_dump() if isinstance(l, BaseModel) else l for l in updates["labels"]]
        # Round-trip through CardUpdate so only the keys the caller set are sent.
        try:
            body = CardUpdate.model_validate(updates).model_dump(mode="json", exclude_unset=True)
        except ValidationError as exc:
            errors = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in exc.errors()]
            raise ApiError(400, "Validation failed", errors) from exc
        return await self._board("PUT", f"/api/board/{board_id}/lists/{list_id}/cards/{card_id}", body)

    async def move_card(
        self, board_id: str, list_id: str, card_id: str, to_list_id: str, to_index: int
    ) -> BoardOut:
        return await self._board(
            "POST",
            f"/api/board/{board_id}/lists/{list_id}/cards/{card_id}/move",
            {"toListId": to_list_id, "toIndex": to_index},
        )

    async def delete_card(self, board_id: str, list_id: str, card_id: str) -> BoardOut:
        return await self._board("DELETE", f"/api/board/{board_id}/lists/{list_id}/cards/{card_id}")
