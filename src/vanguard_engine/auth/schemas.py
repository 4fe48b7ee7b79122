"""Pydantic schemas for session endpoints."""

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = False


class SwitchTenantRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1)


class UserProfile(BaseModel):
    id: str
    email: str
    tenant_id: str
    tenant_name: str = ""
    first_name: str = ""
    last_name: str = ""
    is_super_admin: bool = False
    roles: list[str] = []
    permissions: list[str] = []


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: int
    user: UserProfile


class TenantSummary(BaseModel):
    id: str
    name: str
    slug: str
