from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .auth import get_current_user
from .config import Settings, get_settings
from .errors import TaskboardError, ValidationError
from .log import configure_logging
from .models import Board, BoardList, Card, User, now_utc
from .schemas import (
    BoardCreate,
    BoardOut,
    BoardUpdate,
    CardCreate,
    CardMove,
    CardOut,
    CardUpdate,
    Health,
    LabelOut,
    ListCreate,
    ListOut,
    ListReorder,
    ListUpdate,
    MemberCreate,
    MemberOut,
    UserSummary,
)
from .service import BoardService
from .storage import create_storage

logger = logging.getLogger("taskboard.api")

router = APIRouter(prefix="/api/board", tags=["board"])


# === Helpers ===


def user_summary(user_id: str, users: Dict[str, User]) -> UserSummary:
    user = users.get(user_id)
    if user is None:
        return UserSummary(id=user_id)
    return UserSummary(id=user.id, name=user.name, email=user.email, avatarColor=user.avatar_color)


def card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        title=card.title,
        description=card.description,
        labels=[LabelOut(id=l.id, text=l.text, color=l.color) for l in card.labels],
        dueDate=card.due_date,
        position=card.position,
        createdBy=card.created_by,
        createdAt=card.created_at,
        updatedAt=card.updated_at,
    )


def list_out(lst: BoardList) -> ListOut:
    return ListOut(
        id=lst.id,
        title=lst.title,
        position=lst.position,
        cards=[card_out(c) for c in lst.cards],
        createdBy=lst.created_by,
        createdAt=lst.created_at,
        updatedAt=lst.updated_at,
    )


def board_out(board: Board, users: Dict[str, User]) -> BoardOut:
    return BoardOut(
        id=board.id,
        title=board.title,
        description=board.description,
        lists=[list_out(lst) for lst in board.lists],
        members=[
            MemberOut(user=user_summary(m.user_id, users), role=m.role, joinedAt=m.joined_at)
            for m in board.members
        ],
        isPublic=board.is_public,
        isStarred=board.is_starred,
        createdBy=user_summary(board.created_by, users),
        createdAt=board.created_at,
        updatedAt=board.updated_at,
        version=board.version,
    )


def envelope(data: Optional[Dict[str, Any]] = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_body(message: str, errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def board_response(
    request: Request,
    response: Response,
    board: Board,
    message: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    users = request.app.state.storage.get_users(board.user_ids())
    response.headers["ETag"] = f'"{board.version}"'
    data = {"board": board_out(board, users).model_dump(mode="json")}
    data.update(extra)
    return envelope(data, message)


def expected_version(if_match: Optional[str]) -> Optional[int]:
    if if_match is None:
        return None
    try:
        return int(if_match.strip().strip('"'))
    except ValueError:
        raise ValidationError("If-Match must carry a board version", [{"field": "If-Match", "message": "not a version"}])


def get_service(request: Request) -> BoardService:
    return request.app.state.service


# === Board endpoints ===


@router.get("")
def list_boards(
    request: Request,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
):
    boards = service.get_boards_for_user(user)
    ids = {uid for b in boards for uid in b.user_ids()}
    users = request.app.state.storage.get_users(ids)
    return envelope({"boards": [board_out(b, users).model_dump(mode="json") for b in boards]})


@router.post("", status_code=201)
def create_board(
    payload: BoardCreate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
):
    board = service.create_board(payload.title, payload.description, user)
    return board_response(request, response, board, "Board created successfully")


@router.get("/{board_id}")
def get_board(
    board_id: str,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
):
    board = service.get_board(board_id, user)
    labels = [LabelOut(id=l.id, text=l.text, color=l.color).model_dump() for l in service.available_labels(board)]
    return board_response(request, response, board, labels=labels)


@router.put("/{board_id}")
def update_board(
    board_id: str,
    payload: BoardUpdate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    changes = payload.model_dump(exclude_unset=True)
    board = service.update_board(board_id, user, changes, expected_version(if_match))
    return board_response(request, response, board, "Board updated successfully")


@router.delete("/{board_id}")
def delete_board(
    board_id: str,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    service.delete_board(board_id, user, expected_version(if_match))
    return envelope(message="Board deleted successfully")


@router.post("/{board_id}/members", status_code=201)
def add_member(
    board_id: str,
    payload: MemberCreate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
):
    board = service.add_member(board_id, user, payload.userId, payload.role)
    return board_response(request, response, board, "Member added successfully")


# === List endpoints ===


@router.post("/{board_id}/lists", status_code=201)
def add_list(
    board_id: str,
    payload: ListCreate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.add_list(board_id, user, payload.title, expected_version(if_match))
    return board_response(request, response, board, "List added successfully")


@router.put("/{board_id}/lists/reorder")
def reorder_lists(
    board_id: str,
    payload: ListReorder,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.reorder_lists(board_id, user, payload.fromIndex, payload.toIndex, expected_version(if_match))
    return board_response(request, response, board, "Lists reordered successfully")


@router.put("/{board_id}/lists/{list_id}")
def update_list(
    board_id: str,
    list_id: str,
    payload: ListUpdate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.update_list(board_id, list_id, user, payload.title, expected_version(if_match))
    return board_response(request, response, board, "List updated successfully")


@router.delete("/{board_id}/lists/{list_id}")
def delete_list(
    board_id: str,
    list_id: str,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.delete_list(board_id, list_id, user, expected_version(if_match))
    return board_response(request, response, board, "List deleted successfully")


# === Card endpoints ===


@router.post("/{board_id}/lists/{list_id}/cards", status_code=201)
def add_card(
    board_id: str,
    list_id: str,
    payload: CardCreate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.add_card(board_id, list_id, user, payload.title, payload.description, expected_version(if_match))
    return board_response(request, response, board, "Card added successfully")


@router.put("/{board_id}/lists/{list_id}/cards/{card_id}")
def update_card(
    board_id: str,
    list_id: str,
    card_id: str,
    payload: CardUpdate,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    changes = payload.model_dump(exclude_unset=True)
    board = service.update_card(board_id, list_id, card_id, user, changes, expected_version(if_match))
    return board_response(request, response, board, "Card updated successfully")


@router.post("/{board_id}/lists/{list_id}/cards/{card_id}/move")
def move_card(
    board_id: str,
    list_id: str,
    card_id: str,
    payload: CardMove,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.move_card(
        board_id, list_id, card_id, user, payload.toListId, payload.toIndex, expected_version(if_match)
    )
    return board_response(request, response, board, "Card moved successfully")


@router.delete("/{board_id}/lists/{list_id}/cards/{card_id}")
def delete_card(
    board_id: str,
    list_id: str,
    card_id: str,
    request: Request,
    response: Response,
    user: str = Depends(get_current_user),
    service: BoardService = Depends(get_service),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    board = service.delete_card(board_id, list_id, card_id, user, expected_version(if_match))
    return board_response(request, response, board, "Card deleted successfully")


# === Error translation ===


async def handle_taskboard_error(request: Request, exc: TaskboardError) -> JSONResponse:
    logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_body("Validation failed", errors))


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if request.app.state.settings.is_development else "Internal server error"
    return JSONResponse(status_code=500, content=error_body(message))


# === Application ===


def create_app(settings: Optional[Settings] = None, storage=None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Taskboard API", version=__version__)
    app.state.settings = settings
    app.state.storage = storage if storage is not None else create_storage(settings)
    app.state.service = BoardService(app.state.storage)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TaskboardError, handle_taskboard_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)

    @app.get("/api/health")
    def health() -> dict:
        return envelope(Health(timestamp=now_utc()).model_dump(mode="json"))

    app.include_router(router)
    return app


app = create_app()
