from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field, PlainSerializer, field_validator

from .models import to_iso

# Timestamps leave the API as e.g. 2025-01-01T00:00:00.000Z.
JsDateTime = Annotated[datetime, PlainSerializer(to_iso, return_type=str, when_used="json")]


class Envelope(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    errors: Optional[list[dict[str, Any]]] = None


class Health(BaseModel):
    status: str = "ok"
    timestamp: JsDateTime


# === Responses ===


class UserSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatarColor: Optional[str] = None


class MemberOut(BaseModel):
    user: UserSummary
    role: str
    joinedAt: JsDateTime


class LabelOut(BaseModel):
    id: str
    text: str
    color: str


class CardOut(BaseModel):
    id: str
    title: str
    description: str = ""
    labels: list[LabelOut] = Field(default_factory=list)
    dueDate: Optional[JsDateTime] = None
    position: int = 0
    createdBy: Optional[str] = None
    createdAt: JsDateTime
    updatedAt: JsDateTime


class ListOut(BaseModel):
    id: str
    title: str
    position: int = 0
    cards: list[CardOut] = Field(default_factory=list)
    createdBy: Optional[str] = None
    createdAt: JsDateTime
    updatedAt: JsDateTime


class BoardOut(BaseModel):
    id: str
    title: str
    description: str = ""
    lists: list[ListOut] = Field(default_factory=list)
    members: list[MemberOut] = Field(default_factory=list)
    isPublic: bool = False
    isStarred: bool = False
    createdBy: Optional[UserSummary] = None
    createdAt: JsDateTime
    updatedAt: JsDateTime
    version: int = 0


# === Requests ===


class BoardCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class BoardUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    isPublic: Optional[bool] = None
    isStarred: Optional[bool] = None


class MemberCreate(BaseModel):
    userId: str
    role: str = "member"


class ListCreate(BaseModel):
    title: Optional[str] = None


class ListUpdate(BaseModel):
    title: Optional[str] = None


class ListReorder(BaseModel):
    fromIndex: int
    toIndex: int


class CardCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class LabelIn(BaseModel):
    id: Optional[str] = None
    text: str
    color: str


class CardUpdate(BaseModel):
    """Every field is optional; only fields sent by the client are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    labels: Optional[list[LabelIn]] = None
    dueDate: Optional[datetime] = None
    position: Optional[int] = None

    @field_validator("dueDate", mode="before")
    @classmethod
    def blank_due_date(cls, value: Any) -> Any:
        # An empty string clears the due date, same as null.
        return None if value == "" else value


class CardMove(BaseModel):
    toListId: str
    toIndex: int = Field(ge=0)
