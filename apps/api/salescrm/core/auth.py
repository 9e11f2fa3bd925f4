from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from fastapi import Depends
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from starlette.requests import Request

from salescrm.context import get_correlation_id
from salescrm.core.config import get_settings
from salescrm.core.database import get_db
from salescrm.errors import AuthenticationError
from salescrm.identity.models import User
from salescrm.platform.security.context import AuthContext


LOGGED_OUT_SENTINEL = "loggedout"


def hash_password(password: str) -> str:
    rounds = get_settings().password_hash_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: User) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expires_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def extract_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer ") :].strip()
    return request.cookies.get(get_settings().jwt_cookie_name, "")


def decode_access_token(token: str) -> uuid.UUID:
    settings = get_settings()
    if not token or token == LOGGED_OUT_SENTINEL:
        raise AuthenticationError("You are not logged in. Please log in to get access")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired token. Please log in again") from exc

    subject = payload.get("sub")
    try:
        return uuid.UUID(str(subject))
    except ValueError as exc:
        raise AuthenticationError("Invalid token subject") from exc


def peek_token_subject(request: Request) -> str | None:
    """Returns the caller's user id from a valid token without touching the database."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return str(decode_access_token(token))
    except AuthenticationError:
        return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user_id = decode_access_token(extract_token(request))
    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("The user belonging to this token no longer exists")
    return user


def get_auth_context(request: Request, user: User = Depends(get_current_user)) -> AuthContext:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return AuthContext(user_id=user.id, role=user.role_enum, correlation_id=correlation_id)
