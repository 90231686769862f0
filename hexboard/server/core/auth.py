from __future__ import annotations

import hashlib
import logging
import secrets
import time
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from passlib.hash import pbkdf2_sha256
from sqlalchemy.orm import Session

from hexboard.config import get_settings

from .db import SessionTokenRow, UserRow, get_db
from .storage import iso_timestamp

LOGGER = logging.getLogger(__name__)


class AuthError(Exception):
    """Authentication failed; ``status`` is the HTTP status to report."""

    def __init__(self, message: str, status: int = 401) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def _token_hash(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(password: str, stored: str) -> bool:
    if not stored:
        return False
    try:
        return pbkdf2_sha256.verify(password, stored)
    except ValueError:
        return False


def _normalize_email(email: Any) -> str:
    return str(email or "").strip().lower()


def user_payload(user: UserRow) -> Dict[str, Any]:
    return {"id": user.user_id, "email": user.email, "createdAt": iso_timestamp(user.created)}


def issue_token(db: Session, user: UserRow, *, ttl: Optional[float] = None) -> str:
    now = time.time()
    raw = "hbt_" + secrets.token_urlsafe(24)
    db.add(
        SessionTokenRow(
            user_id=user.user_id,
            hash=_token_hash(raw),
            created=now,
            expires=now + (ttl if ttl is not None else get_settings().token_ttl),
        )
    )
    db.commit()
    return raw


def register(db: Session, email: Any, password: Any) -> tuple[UserRow, str]:
    address = _normalize_email(email)
    secret = str(password or "")
    if not address or not secret:
        raise AuthError("Email and password are required", status=400)
    if not get_settings().is_invited(address):
        LOGGER.info("Registration refused for %s: not invited", address)
        raise AuthError("Not invited", status=403)
    if db.query(UserRow).filter_by(email=address).first():
        raise AuthError("User already exists", status=409)
    user = UserRow(
        user_id=secrets.token_hex(8),
        email=address,
        pass_hash=hash_password(secret),
        created=time.time(),
    )
    db.add(user)
    db.commit()
    LOGGER.info("User %s registered", user.user_id)
    return user, issue_token(db, user)


def login(db: Session, email: Any, password: Any) -> tuple[UserRow, str]:
    address = _normalize_email(email)
    secret = str(password or "")
    if not address or not secret:
        raise AuthError("Email and password are required", status=400)
    user = db.query(UserRow).filter_by(email=address).first()
    if user is None or not verify_password(secret, user.pass_hash):
        logging.getLogger("hexboard.access").info("login.failed email=%s", address)
        raise AuthError("Invalid credentials")
    return user, issue_token(db, user)


def resolve_token(db: Session, raw: Optional[str]) -> Optional[UserRow]:
    """Return the user behind a bearer token, or ``None`` if it is unusable."""
    if not raw:
        return None
    token = db.query(SessionTokenRow).filter_by(hash=_token_hash(raw), revoked=0).first()
    if token is None:
        return None
    if token.expires and time.time() > token.expires:
        return None
    return db.query(UserRow).filter_by(user_id=token.user_id).first()


def revoke_token(db: Session, raw: str) -> bool:
    token = db.query(SessionTokenRow).filter_by(hash=_token_hash(raw)).first()
    if token is None:
        return False
    token.revoked = 1
    db.commit()
    return True


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


async def optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[UserRow]:
    return resolve_token(db, bearer_token(request))


async def current_user(request: Request, db: Session = Depends(get_db)) -> UserRow:
    raw = bearer_token(request)
    if raw is None:
        raise AuthError("Missing token")
    user = resolve_token(db, raw)
    if user is None:
        raise AuthError("Invalid token")
    return user


__all__ = [
    "AuthError",
    "bearer_token",
    "current_user",
    "hash_password",
    "issue_token",
    "login",
    "optional_user",
    "register",
    "resolve_token",
    "revoke_token",
    "user_payload",
    "verify_password",
]
