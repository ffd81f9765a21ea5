import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from bson import ObjectId
from fastapi import Depends, Header, HTTPException, Request, Response

from database import create_document, get_db, is_valid_object_id, now_utc
from schemas import Session, User
from settings import (
    IS_PRODUCTION,
    JWT_ALGO,
    JWT_EXPIRE_DAYS,
    JWT_SECRET,
    SESSION_COOKIE,
    SESSION_TTL_SECONDS,
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    # OAuth-only accounts have no password to compare against
    if not password or not password_hash:
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def create_token(user_doc: dict) -> str:
    payload = {
        "sub": str(user_doc.get("_id")),
        "email": user_doc["email"],
        "role": user_doc.get("role", "user"),
        "exp": datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def user_document(user: User) -> dict:
    """Storable form of a new user. Unset google_id/password_hash are dropped, not stored as null,
    so the sparse unique index on google_id only sees OAuth accounts."""
    doc = user.model_dump()
    for key in ("google_id", "password_hash"):
        if doc.get(key) is None:
            doc.pop(key, None)
    return doc


def public_user(user_doc: dict) -> dict:
    """User document as returned to clients: string id, no password hash."""
    out = {k: v for k, v in user_doc.items() if k not in ("_id", "password_hash")}
    out["id"] = str(user_doc["_id"])
    return out


# Server-side sessions

def create_session(user_id: str) -> str:
    token = secrets.token_hex(24)
    expires_at = now_utc() + timedelta(seconds=SESSION_TTL_SECONDS)
    create_document("session", Session(token=token, user_id=user_id, expires_at=expires_at))
    return token


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_TTL_SECONDS,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="none" if IS_PRODUCTION else "lax",
    )


def destroy_session(token: Optional[str]):
    if token:
        get_db()["session"].delete_one({"token": token})


def _user_by_id(user_id: str) -> Optional[dict]:
    if not is_valid_object_id(user_id):
        return None
    return get_db()["user"].find_one({"_id": ObjectId(user_id)})


def _user_from_session(token: str) -> Optional[dict]:
    session = get_db()["session"].find_one({"token": token})
    if not session:
        return None
    expires_at = session["expires_at"]
    # Mongo hands datetimes back naive, in UTC
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= now_utc():
        destroy_session(token)
        return None
    return _user_by_id(session["user_id"])


def _user_from_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.PyJWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None
    return _user_by_id(payload.get("sub", ""))


def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> Optional[dict]:
    """Resolve the caller from the session cookie, then a bearer JWT, then a `token` cookie."""
    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        user = _user_from_session(session_token)
        if user:
            return user

    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token:
            return _user_from_token(token.strip())

    cookie_token = request.cookies.get("token")
    if cookie_token:
        return _user_from_token(cookie_token)
    return None


def require_user(user=Depends(get_current_user)) -> dict:
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_admin(user=Depends(get_current_user)) -> dict:
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return user
