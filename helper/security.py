# helper/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt
from fastapi import Depends, Header

from helper.config import Settings, get_settings
from helper.error_handling import AuthFailure

JWT_ALGO = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    # OAuth-created users have no password hash
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_token(user_id: int, settings: Settings) -> str:
    payload = {
        "id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGO)


def decode_token(token: str, settings: Settings) -> int:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise AuthFailure("Token expired")
    except jwt.InvalidTokenError:
        raise AuthFailure("Token is not valid")
    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise AuthFailure("Token is not valid")
    return user_id


async def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> int:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthFailure("No token, authorization denied")
    return decode_token(authorization.split(" ", 1)[1].strip(), settings)


def normalize_role(val: Any) -> Optional[str]:
    if val is None:
        return None
    s = str(val).strip().lower()
    if not s:
        return None
    # common variants
    if s in ("super admin", "super_admin", "superadmin", "admin-super", "sa"):
        return "super_admin"
    if s in ("admin", "administrator"):
        return "admin"
    if s in ("user", "member", "customer"):
        return "user"
    return s
