from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from models import UserRole
import uuid


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None


class UserResponse(BaseModel):
    """Public view of a user; the password hash is never part of it"""
    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    avatar: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
