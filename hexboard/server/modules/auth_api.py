from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from hexboard.config.feature_flags import is_enabled
from hexboard.server.core import auth
from hexboard.server.core.db import UserRow, get_db

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register")
async def register(body: Dict[str, Any], db: Session = Depends(get_db)):
    if not is_enabled("enable_registration"):
        raise HTTPException(403, "registration disabled")
    user, token = auth.register(db, body.get("email"), body.get("password"))
    return {"ok": True, "token": token, "user": auth.user_payload(user)}


@router.post("/login")
async def login(body: Dict[str, Any], db: Session = Depends(get_db)):
    user, token = auth.login(db, body.get("email"), body.get("password"))
    return {"ok": True, "token": token, "user": auth.user_payload(user)}


@router.get("/me")
async def me(user: UserRow = Depends(auth.current_user)):
    return auth.user_payload(user)
