from __future__ import annotations

from .errors import AccessDenied
from .models import Board

# Roles allowed through each gate. The creator is always treated as "owner".
VIEW = ("owner", "admin", "member")
EDIT = ("owner", "admin", "member")
MANAGE = ("owner", "admin")
DELETE = ("owner",)


def check_role(board: Board, user_id: str, roles: tuple[str, ...], message: str = "Access denied") -> str:
    role = board.role_of(user_id)
    if role not in roles:
        raise AccessDenied(message)
    return role
