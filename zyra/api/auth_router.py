# zyra/api/auth_router.py
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from zyra.core.limiter import limiter
from zyra.core.security import clear_session_cookie, create_session_token, get_current_user_id, set_session_cookie
from zyra.db.database import get_db_session
from zyra.db.models import User
from zyra.models.user import GoogleSignInRequest, LoginRequest, RegisterRequest, RegisterResponse, UserRead
from zyra.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])

def get_auth_service(session: AsyncSession = Depends(get_db_session)) -> AuthService:
    return AuthService(session)

def _start_session(response: Response, user: User) -> UserRead:
    set_session_cookie(response, create_session_token(user.id, user.email))
    return UserRead.model_validate(user)

@router.post("/register", response_model=RegisterResponse)
@limiter.limit("10/minute")
async def register(
    request: Request,
    payload: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    user = await service.register(payload.email, payload.password, payload.name)
    return RegisterResponse(message="User created", user=UserRead.model_validate(user))

@router.post("/login", response_model=UserRead)
@limiter.limit("20/minute")
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    user = await service.authenticate(credentials.email, credentials.password)
    return _start_session(response, user)

@router.post("/google", response_model=UserRead)
@limiter.limit("20/minute")
async def google_sign_in(
    request: Request,
    response: Response,
    payload: GoogleSignInRequest,
    service: AuthService = Depends(get_auth_service)
):
    user = await service.sign_in_with_google(payload.id_token)
    return _start_session(response, user)

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout():
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response

@router.get("/session", response_model=UserRead)
async def get_session(
    user_id: str = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service)
):
    return UserRead.model_validate(await service.get_user(user_id))
