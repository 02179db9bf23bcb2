from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    or_,
    select,
    update,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import ConcurrentUpdate, NotFound
from .models import Board, User, now_utc

logger = logging.getLogger("taskboard.db")


class Base(DeclarativeBase):
    pass


class UserRecord(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    email: Mapped[str] = mapped_column(String(320), unique=True)
    avatar_color: Mapped[str] = mapped_column(String(16))


class BoardRecord(Base):
    """One row per board; lists and cards live inside ``document``."""

    __tablename__ = "boards"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_by: Mapped[str] = mapped_column(String(36), index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    document: Mapped[Dict[str, Any]] = mapped_column(JSON)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    memberships: Mapped[list[BoardMembership]] = relationship(
        back_populates="board", cascade="all, delete-orphan"
    )


class BoardMembership(Base):
    __tablename__ = "board_memberships"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id", ondelete="CASCADE"))
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    role: Mapped[str] = mapped_column(String(16))  # owner|admin|member

    board: Mapped[BoardRecord] = relationship(back_populates="memberships")

    __table_args__ = (UniqueConstraint("board_id", "user_id", name="uq_member"),)


def make_engine(database_url: str):
    kwargs: Dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


class SqlStorage:
    """SQLAlchemy-backed document store with the same surface as ``Storage``."""

    def __init__(self, database_url: str) -> None:
        self.engine = make_engine(database_url)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(bind=self.engine)

    # === User operations ===
    def add_user(self, user: User) -> User:
        with self.Session.begin() as session:
            session.merge(
                UserRecord(id=user.id, name=user.name, email=user.email, avatar_color=user.avatar_color)
            )
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self.Session() as session:
            record = session.get(UserRecord, user_id)
            return _user(record) if record else None

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        with self.Session() as session:
            records = session.scalars(select(UserRecord).where(UserRecord.id.in_(ids)))
            return {r.id: _user(r) for r in records}

    # === Board operations ===
    def insert_board(self, board: Board) -> Board:
        board.version = 1
        with self.Session.begin() as session:
            session.add(
                BoardRecord(
                    id=board.id,
                    created_by=board.created_by,
                    version=board.version,
                    document=board.to_document(),
                    updated_at=board.updated_at,
                    memberships=_memberships(board),
                )
            )
        return board

    def get_board(self, board_id: str) -> Board:
        with self.Session() as session:
            record = session.get(BoardRecord, board_id)
            if record is None:
                raise NotFound("Board not found")
            return Board.from_document(record.document)

    def save_board(self, board: Board) -> Board:
        expected = board.version
        board.version = expected + 1
        with self.Session.begin() as session:
            result = session.execute(
                update(BoardRecord)
                .where(BoardRecord.id == board.id, BoardRecord.version == expected)
                .values(version=board.version, document=board.to_document(), updated_at=board.updated_at)
            )
            if result.rowcount == 0:
                board.version = expected
                if session.get(BoardRecord, board.id) is None:
                    raise NotFound("Board not found")
                logger.warning("version conflict on board %s: loaded=%s", board.id, expected)
                raise ConcurrentUpdate()
            session.execute(delete(BoardMembership).where(BoardMembership.board_id == board.id))
            for membership in _memberships(board):
                membership.board_id = board.id
                session.add(membership)
        return board

    def delete_board(self, board_id: str) -> None:
        with self.Session.begin() as session:
            record = session.get(BoardRecord, board_id)
            if record is None:
                raise NotFound("Board not found")
            session.delete(record)

    def list_boards_for_user(self, user_id: str) -> List[Board]:
        member_of = select(BoardMembership.board_id).where(BoardMembership.user_id == user_id)
        stmt = (
            select(BoardRecord)
            .where(or_(BoardRecord.created_by == user_id, BoardRecord.id.in_(member_of)))
            .order_by(BoardRecord.updated_at.desc())
        )
        with self.Session() as session:
            return [Board.from_document(r.document) for r in session.scalars(stmt)]


def _user(record: UserRecord) -> User:
    return User(id=record.id, name=record.name, email=record.email, avatar_color=record.avatar_color)


def _memberships(board: Board) -> List[BoardMembership]:
    return [BoardMembership(user_id=m.user_id, role=m.role) for m in board.members]
