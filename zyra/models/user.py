# zyra/models/user.py
from zyra.models.base import CamelModel

class RegisterRequest(CamelModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None

class LoginRequest(CamelModel):
    email: str
    password: str

class GoogleSignInRequest(CamelModel):
    id_token: str

class UserRead(CamelModel):
    id: str
    email: str
    name: str

class RegisterResponse(CamelModel):
    message: str
    user: UserRead
