from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Register / Login ───

class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=255)
    password: str
    role: str = "guest"


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool = True
    is_verified: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileResponse(BaseModel):
    user: UserResponse


# ─── Email verification / Password reset ───

class EmailRequest(BaseModel):
    email: str


class TokenRequest(BaseModel):
    token: str


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class MessageResponse(BaseModel):
    message: str
