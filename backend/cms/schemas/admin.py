from typing import Optional

from pydantic import BaseModel

from cms.schemas.auth import UserResponse


class UserCreate(BaseModel):
    username: str
    email: str
    password: str
    role: str = "guest"
    is_active: bool = True
    is_verified: bool = False


class UserUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    password: Optional[str] = None


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int


class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    verified_users: int
    users_by_role: dict[str, int]
