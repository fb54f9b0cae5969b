import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from database import find_by_id, get_db, serialize_doc
from errors import AuthenticationError, AuthorizationError
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_token(user_id: str, settings: Settings) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=settings.jwt_expire_days)
    return jwt.encode({"id": user_id, "exp": exp}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Not authorized, token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Not authorized, token failed")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authorized, no token")
    payload = decode_token(credentials.credentials, settings)
    user = find_by_id(db, "user", payload.get("id"))
    if not user:
        logger.warning("Token for unknown user id %s", payload.get("id"))
        raise AuthenticationError("Not authorized, user not found")
    return serialize_doc(user)


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user):
        raise AuthorizationError("Access denied, admin only")
    return user


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"


def ensure_owner_or_admin(user: dict, owner_id: Optional[str], message: str) -> None:
    if owner_id != user["id"] and not is_admin(user):
        raise AuthorizationError(message)
