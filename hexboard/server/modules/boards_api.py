from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from hexboard.collab.protocol import GUEST_LABEL
from hexboard.config.feature_flags import is_enabled
from hexboard.server.core.auth import current_user, optional_user
from hexboard.server.core.db import UserRow, get_db
from hexboard.server.core.storage import BoardStore, SharingService

router = APIRouter(tags=["Boards"])


def _require_links() -> None:
    if not is_enabled("enable_share_links"):
        raise HTTPException(403, "share links disabled")


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(400, str(exc))


# ---------------------------------------------------------------------- boards
@router.get("/api/boards")
async def list_boards(user: UserRow = Depends(current_user), db: Session = Depends(get_db)):
    return {"ok": True, "boards": BoardStore(db).list_for_user(user.user_id)}


@router.post("/api/boards", status_code=201)
async def create_board(
    body: Dict[str, Any],
    user: UserRow = Depends(current_user),
    db: Session = Depends(get_db),
):
    board = BoardStore(db).create(user.user_id, body.get("title"), body.get("data"))
    return {"ok": True, "board": board}


@router.get("/api/boards/{board_id}")
async def get_board(board_id: str, user: UserRow = Depends(current_user), db: Session = Depends(get_db)):
    return {"ok": True, "board": BoardStore(db).get(board_id, user.user_id)}


@router.put("/api/boards/{board_id}")
async def update_board(
    board_id: str,
    body: Dict[str, Any],
    user: UserRow = Depends(current_user),
    db: Session = Depends(get_db),
):
    board = BoardStore(db).update(
        board_id, user.user_id, title=body.get("title"), data=body.get("data")
    )
    return {"ok": True, "board": board}


@router.delete("/api/boards/{board_id}")
async def delete_board(board_id: str, user: UserRow = Depends(current_user), db: Session = Depends(get_db)):
    return {"ok": BoardStore(db).delete(board_id, user.user_id)}


@router.post("/api/boards/{board_id}/comments", status_code=201)
async def add_comment(
    board_id: str,
    body: Dict[str, Any],
    share: Optional[str] = None,
    user: Optional[UserRow] = Depends(optional_user),
    db: Session = Depends(get_db),
):
    if user is None and not share:
        raise HTTPException(401, "Missing token")
    try:
        comment = BoardStore(db).add_comment(
            board_id,
            user.user_id if user else None,
            body.get("text"),
            hexagon_id=body.get("hexagonId"),
            share_token=share,
            author=user.email if user else GUEST_LABEL,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return {"ok": True, "comment": comment}


# ---------------------------------------------------------------------- sharing
@router.get("/api/boards/{board_id}/collaborators")
async def list_collaborators(board_id: str, user: UserRow = Depends(current_user), db: Session = Depends(get_db)):
    return {"ok": True, "collaborators": SharingService(db).collaborators(board_id, user.user_id)}


@router.post("/api/boards/{board_id}/collaborators", status_code=201)
async def invite_collaborator(
    board_id: str,
    body: Dict[str, Any],
    user: UserRow = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        collaborator = SharingService(db).invite(
            board_id, user.user_id, str(body.get("email") or ""), str(body.get("role") or "editor")
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return {"ok": True, "collaborator": collaborator}


@router.delete("/api/boards/{board_id}/collaborators/{user_id}")
async def revoke_collaborator(
    board_id: str, user_id: str, user: UserRow = Depends(current_user), db: Session = Depends(get_db)
):
    return {"ok": SharingService(db).revoke(board_id, user.user_id, user_id)}


@router.get("/api/boards/{board_id}/links")
async def list_links(board_id: str, user: UserRow = Depends(current_user), db: Session = Depends(get_db)):
    return {"ok": True, "links": SharingService(db).links(board_id, user.user_id)}


@router.post("/api/boards/{board_id}/links", status_code=201)
async def issue_link(
    board_id: str,
    body: Dict[str, Any],
    user: UserRow = Depends(current_user),
    db: Session = Depends(get_db),
):
    _require_links()
    try:
        link = SharingService(db).issue_link(board_id, user.user_id, str(body.get("role") or "view"))
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return {"ok": True, "link": link}


@router.delete("/api/boards/{board_id}/links/{role}")
async def revoke_link(
    board_id: str, role: str, user: UserRow = Depends(current_user), db: Session = Depends(get_db)
):
    return {"ok": SharingService(db).revoke_link(board_id, user.user_id, role)}


@router.get("/api/shared/{token}")
async def shared_board(token: str, db: Session = Depends(get_db)):
    _require_links()
    board_id, role = SharingService(db).resolve_link(token)
    board = BoardStore(db).get(board_id, share_token=token)
    return {"ok": True, "board": board, "role": role}
