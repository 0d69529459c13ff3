# zyra/core/security.py
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Request, Response

from zyra.core.config import settings
from zyra.core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed.")
        return False


def create_session_token(user_id: str, email: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS)
    )
    payload = {"sub": user_id, "email": email, "exp": expire}
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm=ALGORITHM)


def read_session_user_id(token: str | None) -> str | None:
    """Returns the user id carried by a session token, or None if it is missing or invalid."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SESSION_SECRET, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired.")
        return None
    except jwt.PyJWTError:
        logger.debug("Session token could not be decoded.")
        return None
    user_id = payload.get("sub")
    return str(user_id) if user_id else None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME)


# Dependency resolving the session identity; every canvas-scoped route starts here.
def get_current_user_id(request: Request) -> str:
    user_id = read_session_user_id(request.cookies.get(settings.SESSION_COOKIE_NAME))
    if not user_id:
        raise UnauthorizedException()
    return user_id
