"""Pydantic schemas for role endpoints."""

from pydantic import BaseModel


class RoleResponse(BaseModel):
    id: str
    key: str
    name: str
    description: str | None = None
    permissions: list[str] = []
