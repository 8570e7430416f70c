from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
from readowl.models import UserRole


class RegisterRequest(BaseModel):
    # Optional so the route can report every missing field at once
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterResponse(BaseModel):
    id: str
    email: str
    name: str


class UserLogin(BaseModel):
    email: EmailStr
    password: str
    remember: bool = False


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    image: Optional[str] = None
    role: UserRole
    created_at: datetime
