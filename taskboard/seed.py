"""Populate a SQL-backed store with sample users and a shared board.

    python -m taskboard.seed --database-url sqlite:///./taskboard.db

Prints one bearer token per seeded user.
"""

from __future__ import annotations

import argparse
import logging
from typing import Dict

from .auth import create_access_token
from .config import Settings, get_settings
from .db import SqlStorage
from .log import configure_logging
from .models import User
from .service import BoardService

logger = logging.getLogger("taskboard.seed")

SAMPLE_USERS = [
    User(id="u-john", name="John Doe", email="john@example.com", avatar_color="#3b82f6"),
    User(id="u-jane", name="Jane Smith", email="jane@example.com", avatar_color="#ec4899"),
    User(id="u-bob", name="Bob Johnson", email="bob@example.com", avatar_color="#10b981"),
]

SAMPLE_CARDS = [
    (0, "Setup project infrastructure", "Configure CI/CD pipeline and deployment",
     [{"text": "Infrastructure", "color": "#ef4444"}, {"text": "High Priority", "color": "#f97316"}]),
    (0, "Design database schema", "Document collections and indexes",
     [{"text": "Backend", "color": "#3b82f6"}]),
    (1, "Implement authentication", "JWT issuance and verification", []),
    (2, "Project kickoff", "", [{"text": "Meeting", "color": "#8b5cf6"}]),
]


def seed(storage, settings: Settings) -> Dict[str, str]:
    service = BoardService(storage)
    for user in SAMPLE_USERS:
        storage.add_user(user)
    owner, admin, member = SAMPLE_USERS

    board = service.create_board("Project Management", "Main project board for team collaboration", owner.id)
    service.add_member(board.id, owner.id, admin.id, "admin")
    service.add_member(board.id, owner.id, member.id, "member")

    for list_index, title, description, labels in SAMPLE_CARDS:
        list_id = board.lists[list_index].id
        board = service.add_card(board.id, list_id, owner.id, title, description)
        card = board.lists[list_index].cards[-1]
        if labels:
            board = service.update_card(board.id, list_id, card.id, owner.id, {"labels": labels})

    logger.info("seeded board %s with %d users", board.id, len(SAMPLE_USERS))
    return {user.email: create_access_token(user.id, settings) for user in SAMPLE_USERS}


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the task board database")
    parser.add_argument("--database-url", help="SQLAlchemy URL (defaults to DATABASE_URL)")
    args = parser.parse_args()

    settings = get_settings()
    if args.database_url:
        settings.database_url = args.database_url
    configure_logging(settings.log_level)

    tokens = seed(SqlStorage(settings.database_url), settings)
    for email, token in tokens.items():
        print(f"{email}\t{token}")


if __name__ == "__main__":
    main()
