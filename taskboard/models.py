from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

ROLES = ("owner", "admin", "member")
DEFAULT_LIST_TITLES = ("Lista de tareas", "En proceso", "Hecho")

BOARD_TITLE_MAX = 100
BOARD_DESCRIPTION_MAX = 500
LIST_TITLE_MAX = 50
CARD_TITLE_MAX = 100
CARD_DESCRIPTION_MAX = 500


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as UTC with millisecond precision, e.g. ``2025-01-01T00:00:00.000Z``."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# === Domain objects (one Board document holds everything below it) ===


@dataclass
class User:
    id: str
    name: str
    email: str
    avatar_color: str = "#3b82f6"


@dataclass
class Label:
    id: str
    text: str
    color: str


@dataclass
class Card:
    id: str
    title: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    position: int = 0
    labels: List[Label] = field(default_factory=list)
    due_date: Optional[datetime] = None


@dataclass
class BoardList:
    id: str
    title: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    position: int = 0
    cards: List[Card] = field(default_factory=list)


@dataclass
class Member:
    user_id: str
    role: str
    joined_at: datetime


@dataclass
class Board:
    id: str
    title: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    version: int = 0
    is_public: bool = False
    is_starred: bool = False
    members: List[Member] = field(default_factory=list)
    lists: List[BoardList] = field(default_factory=list)

    def member(self, user_id: str) -> Optional[Member]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def role_of(self, user_id: str) -> Optional[str]:
        if user_id == self.created_by:
            return "owner"
        member = self.member(user_id)
        return member.role if member else None

    def user_ids(self) -> List[str]:
        ids = [self.created_by]
        ids.extend(m.user_id for m in self.members if m.user_id != self.created_by)
        return ids

    def touch(self, when: Optional[datetime] = None) -> datetime:
        self.updated_at = when or now_utc()
        return self.updated_at

    # === Document mapping ===

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdBy": self.created_by,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "version": self.version,
            "isPublic": self.is_public,
            "isStarred": self.is_starred,
            "members": [
                {"user": m.user_id, "role": m.role, "joinedAt": to_iso(m.joined_at)}
                for m in self.members
            ],
            "lists": [_list_document(lst) for lst in self.lists],
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Board":
        return cls(
            id=doc["id"],
            title=doc["title"],
            description=doc.get("description") or "",
            created_by=doc["createdBy"],
            created_at=from_iso(doc["createdAt"]),
            updated_at=from_iso(doc["updatedAt"]),
            version=doc.get("version", 0),
            is_public=doc.get("isPublic", False),
            is_starred=doc.get("isStarred", False),
            members=[
                Member(user_id=m["user"], role=m["role"], joined_at=from_iso(m["joinedAt"]))
                for m in doc.get("members", [])
            ],
            lists=[_list_from_document(lst) for lst in doc.get("lists", [])],
        )


def available_labels(lists: Iterable[Any]) -> List[Any]:
    """Labels found on any card, first occurrence of each (text, color) pair.

    Accepts both domain lists and their wire counterparts.
    """
    seen = set()
    labels = []
    for lst in lists:
        for card in lst.cards:
            for label in card.labels:
                key = (label.text, label.color)
                if key not in seen:
                    seen.add(key)
                    labels.append(label)
    return labels


def _card_document(card: Card) -> Dict[str, Any]:
    return {
        "id": card.id,
        "title": card.title,
        "description": card.description,
        "labels": [{"id": l.id, "text": l.text, "color": l.color} for l in card.labels],
        "dueDate": to_iso(card.due_date),
        "position": card.position,
        "createdBy": card.created_by,
        "createdAt": to_iso(card.created_at),
        "updatedAt": to_iso(card.updated_at),
    }


def _list_document(lst: BoardList) -> Dict[str, Any]:
    return {
        "id": lst.id,
        "title": lst.title,
        "position": lst.position,
        "createdBy": lst.created_by,
        "createdAt": to_iso(lst.created_at),
        "updatedAt": to_iso(lst.updated_at),
        "cards": [_card_document(c) for c in lst.cards],
    }


def _card_from_document(doc: Dict[str, Any]) -> Card:
    return Card(
        id=doc["id"],
        title=doc["title"],
        description=doc.get("description") or "",
        labels=[Label(**l) for l in doc.get("labels", [])],
        due_date=from_iso(doc.get("dueDate")),
        position=doc.get("position", 0),
        created_by=doc["createdBy"],
        created_at=from_iso(doc["createdAt"]),
        updated_at=from_iso(doc["updatedAt"]),
    )


def _list_from_document(doc: Dict[str, Any]) -> BoardList:
    return BoardList(
        id=doc["id"],
        title=doc["title"],
        position=doc.get("position", 0),
        created_by=doc["createdBy"],
        created_at=from_iso(doc["createdAt"]),
        updated_at=from_iso(doc["updatedAt"]),
        cards=[_card_from_document(c) for c in doc.get("cards", [])],
    )
