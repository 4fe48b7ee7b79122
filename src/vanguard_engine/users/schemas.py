"""Pydantic schemas for user endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from vanguard_engine.rbac.catalog import DEFAULT_USER_ROLE


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str = Field("", max_length=50)
    role_key: str = DEFAULT_USER_ROLE
    is_active: bool = True


class UserUpdate(BaseModel):
    is_active: Optional[bool] = None


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    email: str
    first_name: str
    last_name: str
    phone: str
    is_active: bool
    roles: list[str] = []
    created_at: datetime
