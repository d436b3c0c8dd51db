from pydantic import EmailStr, Field
from typing import Optional
from taskflow.schemas.base import CamelModel

class UserCreate(CamelModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)

class UserLogin(CamelModel):
    email: EmailStr
    password: str

class UserResponse(CamelModel):
    id: int
    email: EmailStr
    is_active: bool
    name: Optional[str]
    role: str
    avatar: Optional[str] = None

class UserSummary(CamelModel):
    id: int
    name: Optional[str]
    email: str

class Token(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str
    user: UserResponse
