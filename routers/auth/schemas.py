from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional
from models import UserRole
from routers.users.schemas import UserResponse


# Request schemas
class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.BUYER

    @validator('role')
    def validate_role(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError('Admin accounts cannot be self-registered')
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str
    role: Optional[UserRole] = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)


# Response schemas
class AuthResponse(BaseModel):
    token: str
    user: UserResponse
