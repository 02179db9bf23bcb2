import pytest
from fastapi.testclient import TestClient

from taskboard.auth import create_access_token
from taskboard.config import Settings
from taskboard.main import create_app
from taskboard.models import User
from taskboard.service import BoardService
from taskboard.storage import Storage

OWNER = User(id="u-owner", name="Olivia Owner", email="olivia@example.com", avatar_color="#3b82f6")
ADMIN = User(id="u-admin", name="Adam Admin", email="adam@example.com", avatar_color="#ec4899")
MEMBER = User(id="u-member", name="Mia Member", email="mia@example.com", avatar_color="#10b981")
OUTSIDER = User(id="u-outsider", name="Oscar Outsider", email="oscar@example.com", avatar_color="#f97316")
USERS = [OWNER, ADMIN, MEMBER, OUTSIDER]


@pytest.fixture
def settings():
    return Settings(environment="test", jwt_secret="test-secret", storage_backend="memory", log_level="WARNING")


@pytest.fixture
def storage():
    store = Storage()
    for user in USERS:
        store.add_user(user)
    return store


@pytest.fixture
def service(storage):
    return BoardService(storage)


@pytest.fixture
def app(settings, storage):
    return create_app(settings, storage)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def token_for(settings):
    def make(user):
        return create_access_token(user.id, settings)

    return make


@pytest.fixture
def auth(token_for):
    def headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}

    return headers


@pytest.fixture
def shared_board(service):
    """A board owned by OWNER with ADMIN and MEMBER added."""
    board = service.create_board("Project", "", OWNER.id)
    service.add_member(board.id, OWNER.id, ADMIN.id, "admin")
    return service.add_member(board.id, OWNER.id, MEMBER.id, "member")
