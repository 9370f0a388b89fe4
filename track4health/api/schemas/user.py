# track4health/api/schemas/user.py
from typing import Optional

from pydantic import BaseModel

from ...models.user_models import User


class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginResponse(BaseModel):
    token: Token
    user: User


class CreatedUserResponse(BaseModel):
    id: str
    username: str


# Internal representation of JWT data
class TokenData(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None
