from __future__ import annotations

"""
Board persistence and sharing on top of the SQLAlchemy rows in
:mod:`hexboard.server.core.db`.

The stored ``data`` blob is opaque here except for the ``comments`` list,
which guests with the ``comment`` role may append to.
"""

import logging
import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .db import BoardRow, CollaboratorRow, ShareLinkRow, UserRow, as_json_str, from_json_str

LOGGER = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Board"
INVITE_ROLES = frozenset({"editor", "viewer"})
LINK_ROLES = {"view": "viewer", "comment": "comment"}
EDIT_ROLES = frozenset({"owner", "editor"})
COMMENT_ROLES = frozenset({"owner", "editor", "comment"})


class BoardNotFound(LookupError):
    """Board does not exist or the requester has no access to it."""


class BoardForbidden(PermissionError):
    """Requester can see the board but may not perform the action."""


class UserNotFound(LookupError):
    pass


def iso_timestamp(ts: Optional[float]) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _clean_title(title: Any, fallback: str = DEFAULT_TITLE) -> str:
    if isinstance(title, str) and title.strip():
        return title.strip()
    return fallback


def resolve_role(
    db: Session,
    board_id: str,
    *,
    user_id: Optional[str] = None,
    share_token: Optional[str] = None,
) -> Optional[str]:
    """Return ``owner``/``editor``/``viewer``/``comment`` or ``None``.

    A signed-in user's own role wins over a share link; a link only grants
    its role when it belongs to ``board_id``.
    """
    board = db.query(BoardRow).filter_by(board_id=board_id).first()
    if board is None:
        return None
    if user_id:
        if board.owner_id == user_id:
            return "owner"
        collab = db.query(CollaboratorRow).filter_by(board_id=board_id, user_id=user_id).first()
        if collab is not None:
            return collab.role
    if share_token:
        link = db.query(ShareLinkRow).filter_by(token=share_token, board_id=board_id).first()
        if link is not None:
            return LINK_ROLES.get(link.role)
    return None


class BoardStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ------------------------------------------------------------------ helpers
    def _row(self, board_id: str) -> BoardRow:
        row = self.db.query(BoardRow).filter_by(board_id=board_id).first()
        if row is None:
            raise BoardNotFound(board_id)
        return row

    def _authorize(
        self,
        board_id: str,
        user_id: Optional[str],
        share_token: Optional[str] = None,
    ) -> tuple[BoardRow, str]:
        row = self._row(board_id)
        role = resolve_role(self.db, board_id, user_id=user_id, share_token=share_token)
        if role is None:
            raise BoardNotFound(board_id)
        return row, role

    def _owner_email(self, owner_id: str) -> Optional[str]:
        user = self.db.query(UserRow).filter_by(user_id=owner_id).first()
        return user.email if user else None

    @staticmethod
    def serialize(row: BoardRow, role: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": row.board_id,
            "title": row.title,
            "ownerId": row.owner_id,
            "data": from_json_str(row.data),
            "createdAt": iso_timestamp(row.created),
            "updatedAt": iso_timestamp(row.updated),
        }
        if role is not None:
            payload["role"] = role
        return payload

    # ------------------------------------------------------------------ CRUD
    def create(self, owner_id: str, title: Any = None, data: Any = None) -> Dict[str, Any]:
        now = time.time()
        row = BoardRow(
            board_id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=_clean_title(title),
            data=as_json_str(data if isinstance(data, dict) else {}),
            created=now,
            updated=now,
        )
        self.db.add(row)
        self.db.commit()
        LOGGER.info("Board %s created by %s", row.board_id, owner_id)
        return self.serialize(row, "owner")

    def get(
        self,
        board_id: str,
        user_id: Optional[str] = None,
        *,
        share_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        row, role = self._authorize(board_id, user_id, share_token)
        return self.serialize(row, role)

    def update(
        self,
        board_id: str,
        user_id: Optional[str],
        *,
        title: Any = None,
        data: Any = None,
    ) -> Dict[str, Any]:
        row, role = self._authorize(board_id, user_id)
        if role not in EDIT_ROLES:
            raise BoardForbidden(f"{role} cannot edit board {board_id}")
        wants_rename = isinstance(title, str) and title.strip() and title.strip() != row.title
        if wants_rename and role != "owner":
            raise BoardForbidden("only the owner can rename a board")
        row.title = _clean_title(title, row.title)
        if isinstance(data, dict):
            row.data = as_json_str(data)
        row.updated = time.time()
        self.db.commit()
        return self.serialize(row, role)

    def delete(self, board_id: str, user_id: Optional[str]) -> bool:
        row, role = self._authorize(board_id, user_id)
        if role != "owner":
            raise BoardForbidden("only the owner can delete a board")
        self.db.query(CollaboratorRow).filter_by(board_id=board_id).delete()
        self.db.query(ShareLinkRow).filter_by(board_id=board_id).delete()
        self.db.delete(row)
        self.db.commit()
        LOGGER.info("Board %s deleted", board_id)
        return True

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        shared = {
            c.board_id: c.role
            for c in self.db.query(CollaboratorRow).filter_by(user_id=user_id).all()
        }
        rows = (
            self.db.query(BoardRow)
            .filter(or_(BoardRow.owner_id == user_id, BoardRow.board_id.in_(list(shared))))
            .order_by(BoardRow.updated.desc())
            .all()
        )
        out: List[Dict[str, Any]] = []
        for row in rows:
            entry: Dict[str, Any] = {
                "id": row.board_id,
                "title": row.title,
                "createdAt": iso_timestamp(row.created),
                "updatedAt": iso_timestamp(row.updated),
            }
            if row.owner_id == user_id:
                entry["role"] = "owner"
            else:
                entry["role"] = shared.get(row.board_id, "viewer")
                entry["ownerEmail"] = self._owner_email(row.owner_id)
            out.append(entry)
        return out

    def add_comment(
        self,
        board_id: str,
        user_id: Optional[str],
        text: Any,
        *,
        hexagon_id: Optional[str] = None,
        share_token: Optional[str] = None,
        author: Optional[str] = None,
    ) -> Dict[str, Any]:
        row, role = self._authorize(board_id, user_id, share_token)
        if role not in COMMENT_ROLES:
            raise BoardForbidden(f"{role} cannot comment on board {board_id}")
        body = str(text or "").strip()
        if not body:
            raise ValueError("comment text required")
        comment: Dict[str, Any] = {
            "id": f"comment-{uuid.uuid4().hex[:12]}",
            "author": author or "Guest",
            "text": body,
            "createdAt": iso_timestamp(time.time()),
        }
        if hexagon_id:
            comment["hexagonId"] = hexagon_id
        data = from_json_str(row.data)
        if not isinstance(data, dict):
            data = {}
        comments = data.get("comments")
        if not isinstance(comments, list):
            comments = []
        comments.append(comment)
        data["comments"] = comments
        row.data = as_json_str(data)
        row.updated = time.time()
        self.db.commit()
        return comment


class SharingService:
    """Collaborator invitations and anonymous share links (owner only)."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _require_owner(self, board_id: str, user_id: Optional[str]) -> BoardRow:
        row = self.db.query(BoardRow).filter_by(board_id=board_id).first()
        if row is None:
            raise BoardNotFound(board_id)
        role = resolve_role(self.db, board_id, user_id=user_id)
        if role is None:
            raise BoardNotFound(board_id)
        if role != "owner":
            raise BoardForbidden("only the owner can manage sharing")
        return row

    def invite(self, board_id: str, owner_id: str, email: str, role: str = "editor") -> Dict[str, Any]:
        if role not in INVITE_ROLES:
            raise ValueError(f"role must be one of {sorted(INVITE_ROLES)}")
        row = self._require_owner(board_id, owner_id)
        user = self.db.query(UserRow).filter_by(email=str(email or "").strip().lower()).first()
        if user is None:
            raise UserNotFound(email)
        if user.user_id == row.owner_id:
            raise ValueError("owner already has full access")
        collab = self.db.query(CollaboratorRow).filter_by(board_id=board_id, user_id=user.user_id).first()
        if collab is None:
            collab = CollaboratorRow(board_id=board_id, user_id=user.user_id, role=role)
            self.db.add(collab)
        else:
            collab.role = role
        self.db.commit()
        LOGGER.info("Board %s shared with %s as %s", board_id, user.user_id, role)
        return {"userId": user.user_id, "email": user.email, "role": role}

    def revoke(self, board_id: str, owner_id: str, user_id: str) -> bool:
        self._require_owner(board_id, owner_id)
        removed = self.db.query(CollaboratorRow).filter_by(board_id=board_id, user_id=user_id).delete()
        self.db.commit()
        return bool(removed)

    def collaborators(self, board_id: str, owner_id: str) -> List[Dict[str, Any]]:
        self._require_owner(board_id, owner_id)
        rows = (
            self.db.query(CollaboratorRow, UserRow)
            .join(UserRow, UserRow.user_id == CollaboratorRow.user_id)
            .filter(CollaboratorRow.board_id == board_id)
            .order_by(CollaboratorRow.created)
            .all()
        )
        return [{"userId": u.user_id, "email": u.email, "role": c.role} for c, u in rows]

    def issue_link(self, board_id: str, owner_id: str, role: str = "view") -> Dict[str, Any]:
        if role not in LINK_ROLES:
            raise ValueError(f"role must be one of {sorted(LINK_ROLES)}")
        self._require_owner(board_id, owner_id)
        link = self.db.query(ShareLinkRow).filter_by(board_id=board_id, role=role).first()
        if link is None:
            link = ShareLinkRow(board_id=board_id, role=role, token=secrets.token_urlsafe(18))
            self.db.add(link)
            self.db.commit()
        return {"token": link.token, "role": link.role, "boardId": board_id}

    def revoke_link(self, board_id: str, owner_id: str, role: str) -> bool:
        self._require_owner(board_id, owner_id)
        removed = self.db.query(ShareLinkRow).filter_by(board_id=board_id, role=role).delete()
        self.db.commit()
        return bool(removed)

    def links(self, board_id: str, owner_id: str) -> List[Dict[str, Any]]:
        self._require_owner(board_id, owner_id)
        rows = self.db.query(ShareLinkRow).filter_by(board_id=board_id).order_by(ShareLinkRow.role).all()
        return [{"token": r.token, "role": r.role, "boardId": board_id} for r in rows]

    def resolve_link(self, token: str) -> tuple[str, str]:
        """Map a share token to ``(board_id, role)``."""
        link = self.db.query(ShareLinkRow).filter_by(token=token).first()
        if link is None:
            raise BoardNotFound(token)
        return link.board_id, LINK_ROLES[link.role]


__all__ = [
    "BoardForbidden",
    "BoardNotFound",
    "BoardStore",
    "DEFAULT_TITLE",
    "LINK_ROLES",
    "SharingService",
    "UserNotFound",
    "iso_timestamp",
    "resolve_role",
]
