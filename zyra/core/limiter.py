# zyra/core/limiter.py
from slowapi import Limiter
from slowapi.util import get_remote_address
from zyra.core.config import settings
from zyra.core.security import read_session_user_id

def get_session_key(request) -> str:
    """
    Returns the user ID from the session cookie, falling back to the remote address.
    This ensures that even anonymous requests are still counted against a limit.
    """
    user_id = read_session_user_id(request.cookies.get(settings.SESSION_COOKIE_NAME))
    return user_id or get_remote_address(request)

limiter = Limiter(
    key_func=get_session_key,
    storage_uri=settings.LIMITER_STORAGE_URI,
    strategy="fixed-window"
)
