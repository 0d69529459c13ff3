# zyra/services/auth_service.py
import asyncio
import logging
from typing import Any

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from sqlalchemy.ext.asyncio import AsyncSession

from zyra.core.config import settings
from zyra.core.exceptions import UnauthorizedException, ValidationException
from zyra.core.security import hash_password, verify_password
from zyra.db.models import User
from zyra.db.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "User"


def verify_google_id_token(token: str) -> dict[str, Any]:
    return id_token.verify_oauth2_token(token, google_requests.Request(), settings.OAUTH_CLIENT_ID)


class AuthService:
    def __init__(self, session: AsyncSession):
        self.repo = UserRepository(session)

    async def register(self, email: str | None, password: str | None, name: str | None = None) -> User:
        if not email or not password:
            raise ValidationException("Email and password are required")
        if await self.repo.get_by_email(email) is not None:
            raise ValidationException("User with this email already exists")
        return await self.repo.add_user(email, name or DEFAULT_USER_NAME, hash_password(password))

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.repo.get_by_email(email)
        # OAuth-only accounts have no password and cannot use credential sign-in.
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthorizedException("Invalid email or password")
        return user

    async def sign_in_with_google(self, token: str) -> User:
        try:
            claims = await asyncio.to_thread(verify_google_id_token, token)
        except ValueError as exc:
            logger.warning("Rejected Google ID token: %s", exc)
            raise UnauthorizedException("Invalid Google credentials") from exc
        return await self.sign_in_oauth(claims.get("email"), claims.get("name"))

    async def sign_in_oauth(self, email: str | None, name: str | None) -> User:
        """Finds the account for a verified OAuth email, creating it on first sign-in."""
        if not email:
            raise UnauthorizedException("OAuth profile has no email")
        user = await self.repo.get_by_email(email)
        if user is None:
            user = await self.repo.add_user(email, name or DEFAULT_USER_NAME, None)
            logger.info("Created OAuth user %s", user.id)
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.repo.get_by_id(user_id)
        if user is None:
            raise UnauthorizedException()
        return user
